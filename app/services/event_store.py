# app/services/event_store.py
"""
Event Store — append-only access to occupancy_events.
Writers go through append_event (called by the ledger and reset engine inside their
transaction); nothing in the application updates or deletes event rows.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.area import Area
from app.models.occupancy_event import OccupancyEvent, FLOW_IN, FLOW_OUT


def flow_type_for(requested_delta: int) -> str:
    """Reporting label only; arithmetic always uses the signed delta."""
    return FLOW_IN if requested_delta > 0 else FLOW_OUT


def append_event(db: Session, area: Area, *, delta: int, requested_delta: int,
                 occupancy_after: int, event_type: str, source: str,
                 idempotency_key: str, timestamp: datetime,
                 device_id: Optional[str] = None, gender: Optional[str] = None,
                 user_id: Optional[str] = None, reason: Optional[str] = None) -> OccupancyEvent:
    """Stage a new event for the area and flush so its id is available."""
    event = OccupancyEvent(
        business_id=area.business_id,
        venue_id=area.venue_id,
        area_id=area.id,
        delta=delta,
        requested_delta=requested_delta,
        occupancy_after=occupancy_after,
        flow_type=flow_type_for(requested_delta),
        event_type=event_type,
        source=source,
        device_id=device_id,
        gender=gender,
        idempotency_key=idempotency_key,
        user_id=user_id,
        reason=reason,
        timestamp=timestamp,
    )
    db.add(event)
    db.flush()
    return event


def find_by_idempotency_key(db: Session, area_id: int, key: str) -> Optional[OccupancyEvent]:
    return db.query(OccupancyEvent).filter(
        OccupancyEvent.area_id == area_id,
        OccupancyEvent.idempotency_key == key,
    ).first()


def list_events(db: Session, business_id: int, venue_id: Optional[int] = None,
                area_id: Optional[int] = None, event_type: Optional[str] = None,
                limit: int = 50) -> list[OccupancyEvent]:
    """Audit log, newest first."""
    q = db.query(OccupancyEvent).filter(OccupancyEvent.business_id == business_id)
    if venue_id is not None:
        q = q.filter(OccupancyEvent.venue_id == venue_id)
    if area_id is not None:
        q = q.filter(OccupancyEvent.area_id == area_id)
    if event_type:
        q = q.filter(OccupancyEvent.event_type == event_type)
    return q.order_by(OccupancyEvent.timestamp.desc(), OccupancyEvent.id.desc()).limit(limit).all()


def count_events(db: Session, area_id: Optional[int] = None) -> int:
    q = db.query(func.count(OccupancyEvent.id))
    if area_id is not None:
        q = q.filter(OccupancyEvent.area_id == area_id)
    return q.scalar() or 0
