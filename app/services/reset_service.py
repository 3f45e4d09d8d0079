# app/services/reset_service.py
"""
Reset/Audit Engine — zero occupancy without deleting history.

Each area in scope is reset in its own transaction under the same per-area lock
the ledger uses: a RESET event with delta = -current is appended (attributed to
the actor, with the reason), then the snapshot is set to 0 and last_reset_at to
the reset event's timestamp. Per-area failures are collected into the summary so
"reset venue" can report partial completion instead of failing outright.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.exceptions import AreaNotFound, InvalidRequest, LedgerError
from app.models.area import Area, AREA_ACTIVE
from app.models.member import ROLE_OWNER, ROLE_ADMIN
from app.models.occupancy_event import EVENT_RESET
from app.models.venue import Venue, VENUE_ACTIVE
from app.services.auth_service import require_scope, require_business_wide
from app.services.event_store import append_event
from app.services.ledger_service import event_time_after_reset
from app.services.snapshot_service import load_area_for_update
from app.utils.locks import area_lock
from app.utils.logger import get_logger

logger = get_logger(__name__)

SCOPE_BUSINESS = "BUSINESS"
SCOPE_VENUE = "VENUE"
SCOPE_AREA = "AREA"
RESET_SCOPES = (SCOPE_BUSINESS, SCOPE_VENUE, SCOPE_AREA)
RESET_SOURCE = "reset"


@dataclass
class AreaResetResult:
    area_id: int
    success: bool
    clamped_delta: int = 0
    event_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ResetSummary:
    scope: str
    business_id: int
    results: list[AreaResetResult] = field(default_factory=list)

    @property
    def affected_area_ids(self) -> list[int]:
        return [r.area_id for r in self.results if r.success]

    @property
    def failed_area_ids(self) -> list[int]:
        return [r.area_id for r in self.results if not r.success]

    @property
    def per_area_clamped_delta(self) -> dict[int, int]:
        return {r.area_id: r.clamped_delta for r in self.results if r.success}


def _areas_in_scope(db: Session, scope: str, business_id: int, actor_id: str,
                    venue_id: Optional[int], area_id: Optional[int]) -> list[int]:
    if scope == SCOPE_AREA:
        if area_id is None:
            raise InvalidRequest("AREA reset needs an area_id")
        q = db.query(Area).filter(Area.id == area_id, Area.business_id == business_id,
                                  Area.status == AREA_ACTIVE)
        if venue_id is not None:
            q = q.filter(Area.venue_id == venue_id)
        area = q.first()
        if not area:
            raise AreaNotFound(f"Area {area_id} not found")
        require_scope(db, actor_id, business_id, area.venue_id)
        return [area.id]

    q = db.query(Area.id).join(Venue, Venue.id == Area.venue_id).filter(
        Area.business_id == business_id, Area.status == AREA_ACTIVE, Venue.status == VENUE_ACTIVE
    )
    if scope == SCOPE_VENUE:
        if venue_id is None:
            raise InvalidRequest("VENUE reset needs a venue_id")
        venue = db.query(Venue).filter(Venue.id == venue_id, Venue.business_id == business_id,
                                       Venue.status == VENUE_ACTIVE).first()
        if not venue:
            raise AreaNotFound(f"Venue {venue_id} not found")
        require_scope(db, actor_id, business_id, venue_id)
        q = q.filter(Area.venue_id == venue_id)
    else:
        require_business_wide(require_scope(db, actor_id, business_id))
    return [row.id for row in q.order_by(Area.id)]


def reset_area(db: Session, area_id: int, actor_id: str, reason: Optional[str] = None) -> AreaResetResult:
    """Reset one area in its own transaction. Never raises for storage or ledger errors."""
    with area_lock(area_id):
        try:
            area = load_area_for_update(db, area_id)
            current = area.current_occupancy or 0
            # The reset must sort after every event already written for the area
            now = event_time_after_reset(area)
            if area.updated_at is not None and now < area.updated_at:
                now = area.updated_at

            event = append_event(
                db, area, delta=-current, requested_delta=-current, occupancy_after=0,
                event_type=EVENT_RESET, source=RESET_SOURCE,
                idempotency_key=f"reset:{uuid.uuid4().hex}", timestamp=now,
                user_id=actor_id, reason=reason,
            )
            event_id = event.id
            area.current_occupancy = 0
            area.last_reset_at = now
            area.updated_at = now
            db.commit()
        except (SQLAlchemyError, LedgerError) as e:
            db.rollback()
            logger.error(f"[RESET] Area {area_id} failed: {e}")
            return AreaResetResult(area_id=area_id, success=False, error=str(e))

    logger.info(f"[RESET] Area {area_id}: {current} → 0 by {actor_id} (event {event_id})"
                + (f" reason={reason}" if reason else ""))
    return AreaResetResult(area_id=area_id, success=True, clamped_delta=-current, event_id=event_id)


def reset_counts(db: Session, scope: str, business_id: int, actor_id: str,
                 venue_id: Optional[int] = None, area_id: Optional[int] = None,
                 reason: Optional[str] = None) -> ResetSummary:
    """
    Zero every active area in the BUSINESS / VENUE / AREA scope.
    Raises Unauthorized, AreaNotFound or InvalidRequest before touching any area;
    per-area failures after that are reported in the summary.
    """
    scope = (scope or "").upper()
    if scope not in RESET_SCOPES:
        raise InvalidRequest(f"Unknown reset scope '{scope}'")

    area_ids = _areas_in_scope(db, scope, business_id, actor_id, venue_id, area_id)
    summary = ResetSummary(scope=scope, business_id=business_id)
    for aid in area_ids:
        summary.results.append(reset_area(db, aid, actor_id, reason))

    done, total = len(summary.affected_area_ids), len(summary.results)
    log = logger.info if done == total else logger.warning
    log(f"[RESET] {scope} reset of business {business_id}: {done} of {total} areas reset"
        + (f", failed: {summary.failed_area_ids}" if done != total else ""))
    return summary


def factory_reset(db: Session, business_id: int, actor_id: str, reason: Optional[str] = None) -> ResetSummary:
    """
    Full recovery reset: every area across every venue of the business.
    Goes area by area like any other reset; the event history is kept.
    """
    require_business_wide(require_scope(db, actor_id, business_id), roles={ROLE_OWNER, ROLE_ADMIN})
    logger.warning(f"[RESET] Factory reset of business {business_id} requested by {actor_id}")
    return reset_counts(db, SCOPE_BUSINESS, business_id, actor_id, reason=reason or "factory reset")
