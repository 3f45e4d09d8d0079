# app/services/ledger_service.py
"""
Occupancy Ledger — the only writer of an area's running occupancy.

apply_delta turns one tap / bulk correction / accepted ID scan into exactly one
occupancy event plus one snapshot update, committed together while the area is
locked (in-process lock + SELECT ... FOR UPDATE). Guarantees:
  - occupancy never goes below zero: negative deltas are clamped and the event
    records the applied delta, so events always reconcile with the snapshot
  - a repeated idempotency key for the same area writes nothing and returns the
    original result
  - scan-sourced entries are refused for actively banned patrons
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from app.config import settings
from app.exceptions import InvalidDelta, BannedPatron, StorageConflict
from app.models.area import Area
from app.models.occupancy_event import OccupancyEvent, EVENT_TAP, EVENT_BULK, EVENT_SCAN
from app.services.auth_service import require_scope
from app.services.ban_service import find_active_ban, record_enforcement
from app.services.event_store import append_event, find_by_idempotency_key
from app.services.snapshot_service import load_area_for_update
from app.services.alert_service import check_capacity
from app.utils.locks import area_lock
from app.utils.time import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

LEDGER_EVENT_TYPES = (EVENT_TAP, EVENT_BULK, EVENT_SCAN)
_TICK = timedelta(microseconds=1)


@dataclass(frozen=True)
class AreaScope:
    business_id: int
    venue_id: int
    area_id: int


@dataclass
class DeltaResult:
    new_occupancy: int
    event_id: int
    applied_delta: int
    duplicate: bool = False


def _validate_delta(delta) -> None:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidDelta(f"Delta must be an integer, got {delta!r}")
    if delta == 0:
        raise InvalidDelta("Delta must be non-zero")


def event_time_after_reset(area: Area, now: Optional[datetime] = None) -> datetime:
    """Event timestamps must fall strictly after the area's last reset."""
    now = now or utcnow()
    if area.last_reset_at is not None and now <= area.last_reset_at:
        return area.last_reset_at + _TICK
    return now


def _duplicate_result(event: OccupancyEvent) -> DeltaResult:
    return DeltaResult(new_occupancy=event.occupancy_after, event_id=event.id,
                       applied_delta=event.delta, duplicate=True)


def apply_delta(db: Session, scope: AreaScope, delta: int, source: str = "manual",
                idempotency_key: Optional[str] = None, actor_id: Optional[str] = None,
                device_id: Optional[str] = None, event_type: str = EVENT_TAP,
                gender: Optional[str] = None, person_key: Optional[str] = None) -> DeltaResult:
    """
    Apply a signed occupancy change to one area. Returns the post-update occupancy
    and the event id, both read inside the writing transaction.
    """
    _validate_delta(delta)
    if event_type not in LEDGER_EVENT_TYPES:
        raise InvalidDelta(f"Event type {event_type} cannot be applied as a delta")
    require_scope(db, actor_id, scope.business_id, scope.venue_id)
    key = idempotency_key or uuid.uuid4().hex

    with area_lock(scope.area_id):
        try:
            result = _apply_locked(db, scope, delta, source, key, actor_id,
                                   device_id, event_type, gender, person_key)
        except IntegrityError:
            # Another worker committed the same key first
            db.rollback()
            existing = find_by_idempotency_key(db, scope.area_id, key)
            if existing is None:
                raise
            logger.info(f"[LEDGER] Area {scope.area_id}: key {key} won by concurrent writer")
            return _duplicate_result(existing)
        except OperationalError as e:
            db.rollback()
            logger.warning(f"[LEDGER] Area {scope.area_id}: storage conflict ({e.orig})")
            raise StorageConflict() from e

        # Capacity alerts are checked and created under the area lock
        if not result.duplicate and result.applied_delta > 0:
            area = db.query(Area).filter(Area.id == scope.area_id).first()
            check_capacity(db, area)
    return result


def _apply_locked(db: Session, scope: AreaScope, delta: int, source: str, key: str,
                  actor_id: Optional[str], device_id: Optional[str], event_type: str,
                  gender: Optional[str], person_key: Optional[str]) -> DeltaResult:
    area = load_area_for_update(db, scope.area_id, scope.business_id, scope.venue_id)

    existing = find_by_idempotency_key(db, area.id, key)
    if existing:
        db.rollback()
        logger.info(f"[LEDGER] Area {area.id}: duplicate key {key} suppressed")
        return _duplicate_result(existing)

    if event_type == EVENT_SCAN and delta > 0 and person_key:
        ban = find_active_ban(db, person_key, scope.business_id, scope.venue_id)
        if ban:
            record_enforcement(db, ban, scope.venue_id, area.id, person_key,
                               device_id=device_id, user_id=actor_id)
            db.commit()
            logger.warning(f"[LEDGER] Area {scope.area_id}: entry refused, ban {ban.id} active")
            raise BannedPatron(f"Patron is banned from venue {scope.venue_id}", ban_id=ban.id)

    current = area.current_occupancy or 0
    applied = max(delta, -current)
    if applied != delta:
        logger.warning(f"[LEDGER] Area {area.id}: delta {delta} clamped to {applied} at occupancy {current}")
    new_occupancy = current + applied
    now = event_time_after_reset(area)

    event = append_event(
        db, area, delta=applied, requested_delta=delta, occupancy_after=new_occupancy,
        event_type=event_type, source=source, idempotency_key=key, timestamp=now,
        device_id=device_id, gender=gender, user_id=actor_id,
    )
    event_id = event.id
    area.current_occupancy = new_occupancy
    area.updated_at = now
    db.commit()

    logger.info(f"[LEDGER] Area {scope.area_id}: {current} {applied:+d} → {new_occupancy} "
                f"(event {event_id}, {event_type}/{source})")
    return DeltaResult(new_occupancy=new_occupancy, event_id=event_id, applied_delta=applied)


def retry_on_conflict(fn: Callable, *args, attempts: Optional[int] = None,
                      base_delay: Optional[float] = None, **kwargs):
    """
    Call fn, retrying StorageConflict with exponential backoff.
    Safe for apply_delta because retries reuse the same idempotency key.
    """
    attempts = attempts or settings.CONFLICT_RETRY_ATTEMPTS
    delay = settings.CONFLICT_RETRY_BASE_DELAY if base_delay is None else base_delay
    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except StorageConflict:
            if attempt == attempts:
                raise
            logger.warning(f"[LEDGER] Conflict on attempt {attempt}/{attempts}, retry in {delay}s")
            time.sleep(delay)
            delay *= 2
