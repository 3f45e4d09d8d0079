# app/services/snapshot_service.py
"""
Snapshot Store — the cached occupancy per area.

The snapshot lives on the areas row (current_occupancy, last_reset_at). It is a
projection of occupancy_events and can always be rebuilt by summing the deltas
recorded after last_reset_at.
"""

from typing import Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.area import Area, AREA_ACTIVE
from app.models.occupancy_event import OccupancyEvent
from app.exceptions import AreaNotFound, Unauthorized
from app.models.member import ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER
from app.services.auth_service import require_scope
from app.utils.locks import area_lock
from app.utils.time import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

REBUILD_ROLES = {ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER}


def _active_area_query(db: Session, area_id: int, business_id: Optional[int] = None,
                       venue_id: Optional[int] = None):
    q = db.query(Area).filter(Area.id == area_id, Area.status == AREA_ACTIVE)
    if business_id is not None:
        q = q.filter(Area.business_id == business_id)
    if venue_id is not None:
        q = q.filter(Area.venue_id == venue_id)
    return q


def load_area_for_update(db: Session, area_id: int, business_id: Optional[int] = None,
                         venue_id: Optional[int] = None) -> Area:
    """
    Row-lock the area for the rest of the transaction and return fresh state.
    Raises AreaNotFound for missing, foreign or soft-deleted areas.
    """
    area = (
        _active_area_query(db, area_id, business_id, venue_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not area:
        raise AreaNotFound(f"Area {area_id} not found")
    return area


def get_snapshot(db: Session, area_id: int, business_id: Optional[int] = None) -> Area:
    area = _active_area_query(db, area_id, business_id).first()
    if not area:
        raise AreaNotFound(f"Area {area_id} not found")
    return area


def list_snapshots(db: Session, business_id: int, venue_id: Optional[int] = None) -> list[Area]:
    q = db.query(Area).filter(Area.business_id == business_id, Area.status == AREA_ACTIVE)
    if venue_id is not None:
        q = q.filter(Area.venue_id == venue_id)
    return q.order_by(Area.venue_id, Area.id).all()


def replay_occupancy(db: Session, area: Area) -> int:
    """Sum of event deltas recorded strictly after the area's last reset."""
    q = db.query(func.coalesce(func.sum(OccupancyEvent.delta), 0)).filter(
        OccupancyEvent.area_id == area.id
    )
    if area.last_reset_at is not None:
        q = q.filter(OccupancyEvent.timestamp > area.last_reset_at)
    return int(q.scalar() or 0)


def verify_snapshot(db: Session, area_id: int, business_id: Optional[int] = None) -> Tuple[int, int]:
    """Return (snapshot value, value replayed from the event store)."""
    area = get_snapshot(db, area_id, business_id)
    return area.current_occupancy, replay_occupancy(db, area)


def rebuild_snapshot(db: Session, area_id: int, business_id: int, actor_id: str) -> Tuple[int, int]:
    """
    Overwrite current_occupancy with the replayed value. Returns (before, after).
    Repair tool for snapshots edited outside the ledger.
    """
    area = get_snapshot(db, area_id, business_id)
    member = require_scope(db, actor_id, business_id, area.venue_id)
    if member.role not in REBUILD_ROLES:
        raise Unauthorized(f"Role {member.role} may not rebuild snapshots")
    with area_lock(area_id):
        area = load_area_for_update(db, area_id, business_id)
        before = area.current_occupancy
        replayed = replay_occupancy(db, area)
        if replayed < 0:
            logger.error(f"[SNAPSHOT] Area {area_id} replays to {replayed}; clamping to 0")
            replayed = 0
        if replayed != before:
            logger.warning(f"[SNAPSHOT] Area {area_id} drifted: snapshot={before} events={replayed}")
            area.current_occupancy = replayed
            area.updated_at = utcnow()
        db.commit()
    return before, replayed
