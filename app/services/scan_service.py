# app/services/scan_service.py
"""
ID scan decisions at the door.

The scanner app parses the ID document (out of scope here) and posts the
age / sex / zip facts plus an identity key. evaluate_scan decides ACCEPTED or
DENIED; accepted scans go through the ledger as a SCAN entry, which also runs the
ban check. Every decision is written to id_scans.
"""

import uuid
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.config import settings
from app.exceptions import BannedPatron
from app.models.id_scan import (
    IdScan, SCAN_ACCEPTED, SCAN_DENIED, DENY_UNDERAGE, DENY_BANNED, DENY_EXPIRED_ID,
)
from app.models.occupancy_event import OccupancyEvent, EVENT_SCAN
from app.services.alert_service import create_alert, BAN_BLOCKED
from app.services.auth_service import require_scope
from app.services.ledger_service import AreaScope, apply_delta
from app.utils.time import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ScanFacts:
    age: Optional[int] = None
    sex: Optional[str] = None
    zip: Optional[str] = None
    id_expired: bool = False


@dataclass
class ScanResult:
    scan_id: int
    outcome: str
    reason: Optional[str] = None
    new_occupancy: Optional[int] = None
    event_id: Optional[int] = None
    ban_id: Optional[int] = None


def evaluate_scan(facts: ScanFacts, min_age: Optional[int] = None):
    """Return (outcome, reason). An unknown age is treated as underage."""
    min_age = settings.MIN_ENTRY_AGE if min_age is None else min_age
    if facts.id_expired:
        return SCAN_DENIED, DENY_EXPIRED_ID
    if facts.age is None or facts.age < min_age:
        return SCAN_DENIED, DENY_UNDERAGE
    return SCAN_ACCEPTED, None


def _find_scan(db: Session, area_id: int, idempotency_key: str) -> Optional[IdScan]:
    return db.query(IdScan).filter(IdScan.area_id == area_id,
                                   IdScan.idempotency_key == idempotency_key).first()


def _stored_result(db: Session, scan: IdScan) -> ScanResult:
    new_occupancy = None
    if scan.occupancy_event_id is not None:
        event = db.query(OccupancyEvent).filter(OccupancyEvent.id == scan.occupancy_event_id).first()
        new_occupancy = event.occupancy_after if event else None
    return ScanResult(scan_id=scan.id, outcome=scan.outcome, reason=scan.reason,
                      new_occupancy=new_occupancy, event_id=scan.occupancy_event_id,
                      ban_id=scan.ban_id)


def process_scan(db: Session, scope: AreaScope, facts: ScanFacts, person_key: Optional[str],
                 actor_id: str, device_id: Optional[str] = None,
                 idempotency_key: Optional[str] = None) -> ScanResult:
    """
    Decide, count and record one scan. A resend with the same idempotency_key
    returns the first decision without counting, blocking or alerting again.
    """
    require_scope(db, actor_id, scope.business_id, scope.venue_id)
    key = idempotency_key or uuid.uuid4().hex
    previous = _find_scan(db, scope.area_id, key)
    if previous:
        logger.info(f"[SCAN] Area {scope.area_id}: resent scan {key} returns scan {previous.id}")
        return _stored_result(db, previous)

    outcome, reason = evaluate_scan(facts)
    new_occupancy = event_id = ban_id = None

    if outcome == SCAN_ACCEPTED:
        try:
            result = apply_delta(
                db, scope, 1, source="scan", idempotency_key=key,
                actor_id=actor_id, device_id=device_id, event_type=EVENT_SCAN,
                gender=facts.sex, person_key=person_key,
            )
        except BannedPatron as e:
            outcome, reason, ban_id = SCAN_DENIED, DENY_BANNED, e.ban_id
            create_alert(db, BAN_BLOCKED, scope.business_id, scope.venue_id, scope.area_id,
                         f"Banned patron refused at venue {scope.venue_id} (ban {e.ban_id})")
        else:
            new_occupancy, event_id = result.new_occupancy, result.event_id

    scan = IdScan(
        business_id=scope.business_id, venue_id=scope.venue_id, area_id=scope.area_id,
        outcome=outcome, reason=reason, age=facts.age, sex=facts.sex, zip=facts.zip,
        person_key=person_key, occupancy_event_id=event_id, ban_id=ban_id,
        idempotency_key=key, device_id=device_id, user_id=actor_id, scanned_at=utcnow(),
    )
    db.add(scan)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent resend recorded the scan first
        db.rollback()
        previous = _find_scan(db, scope.area_id, key)
        if previous is None:
            raise
        return _stored_result(db, previous)

    logger.info(f"[SCAN] Venue {scope.venue_id} area {scope.area_id}: {outcome}"
                + (f" ({reason})" if reason else ""))
    return ScanResult(scan_id=scan.id, outcome=outcome, reason=reason,
                      new_occupancy=new_occupancy, event_id=event_id, ban_id=ban_id)
