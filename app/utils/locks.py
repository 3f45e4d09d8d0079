# app/utils/locks.py
"""
Per-area mutual exclusion inside one worker process.

The ledger holds the area lock for the whole read-modify-write of an area's
snapshot row. Across processes the same guarantee comes from SELECT ... FOR UPDATE
on the area row; this lock makes the single-writer rule hold on backends that
ignore row locks (SQLite) and keeps contended rows off the database.
"""

import threading
from contextlib import contextmanager

_registry_guard = threading.Lock()
_area_locks: dict[int, threading.Lock] = {}


def _lock_for(area_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _area_locks.get(area_id)
        if lock is None:
            lock = _area_locks[area_id] = threading.Lock()
        return lock


@contextmanager
def area_lock(area_id: int):
    """Serialize ledger writers for one area."""
    lock = _lock_for(area_id)
    with lock:
        yield
