# app/exceptions.py
"""
Typed failures raised by the ledger, totals, reset and ban services.
Each carries the HTTP status the API layer maps it to.
"""


class LedgerError(Exception):
    """Base error with a user-facing message and an HTTP status code."""

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class Unauthorized(LedgerError):
    """Caller is not scoped to the business/venue/area."""

    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Actor is not scoped to this business or venue"):
        super().__init__(message, 403)


class AreaNotFound(LedgerError):
    """Target area (or venue) does not exist or is soft-deleted."""

    error_code = "AREA_NOT_FOUND"

    def __init__(self, message: str):
        super().__init__(message, 404)


class BannedPatron(LedgerError):
    """Scan-sourced increment rejected by an active ban."""

    error_code = "BANNED"

    def __init__(self, message: str, ban_id: int = None):
        self.ban_id = ban_id
        super().__init__(message, 403)


class InvalidDelta(LedgerError):
    error_code = "INVALID_DELTA"

    def __init__(self, message: str):
        super().__init__(message, 400)


class InvalidRequest(LedgerError):
    error_code = "INVALID_REQUEST"

    def __init__(self, message: str):
        super().__init__(message, 400)


class StorageConflict(LedgerError):
    """Serialization failure or deadlock. Retry with the same idempotency key."""

    error_code = "STORAGE_CONFLICT"

    def __init__(self, message: str = "Storage conflict, retry the request"):
        super().__init__(message, 409)


class NotFound(LedgerError):
    error_code = "NOT_FOUND"

    def __init__(self, message: str):
        super().__init__(message, 404)
