# app/services/totals_service.py
"""
Traffic Totals Engine — in/out/net/count over a scope and time window.

Rules:
  - window is [start, end); default is "today" in the venue (or business) timezone
  - per area, only events strictly after that area's last reset count, so totals
    read zero right after a reset even though the history is still stored
  - total_in sums positive deltas, total_out sums the magnitude of negative deltas;
    flow_type is a label and is never used here
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session
from app.models.area import Area, AREA_ACTIVE
from app.models.business import Business
from app.models.venue import Venue, VENUE_ACTIVE
from app.models.occupancy_event import OccupancyEvent
from app.exceptions import AreaNotFound, InvalidRequest
from app.utils.time import today_window, to_naive_utc
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TrafficTotals:
    total_in: int = 0
    total_out: int = 0
    net_delta: int = 0
    event_count: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


_IN_EXPR = func.coalesce(func.sum(case((OccupancyEvent.delta > 0, OccupancyEvent.delta), else_=0)), 0)
_OUT_EXPR = func.coalesce(func.sum(case((OccupancyEvent.delta < 0, -OccupancyEvent.delta), else_=0)), 0)
_COUNT_EXPR = func.count(OccupancyEvent.id)


def _scope_timezone(db: Session, business_id: int, venue_id: Optional[int],
                    area_id: Optional[int]) -> Optional[str]:
    business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        raise AreaNotFound(f"Business {business_id} not found")
    if area_id is not None and venue_id is None:
        area = db.query(Area).filter(Area.id == area_id, Area.business_id == business_id).first()
        venue_id = area.venue_id if area else None
    if venue_id is not None:
        venue = db.query(Venue).filter(Venue.id == venue_id, Venue.business_id == business_id).first()
        if venue and venue.timezone:
            return venue.timezone
    return business.timezone


def _check_scope(db: Session, business_id: int, venue_id: Optional[int], area_id: Optional[int]):
    if venue_id is not None:
        venue = db.query(Venue).filter(
            Venue.id == venue_id, Venue.business_id == business_id, Venue.status == VENUE_ACTIVE
        ).first()
        if not venue:
            raise AreaNotFound(f"Venue {venue_id} not found")
    if area_id is not None:
        q = db.query(Area).filter(Area.id == area_id, Area.business_id == business_id,
                                  Area.status == AREA_ACTIVE)
        if venue_id is not None:
            q = q.filter(Area.venue_id == venue_id)
        if not q.first():
            raise AreaNotFound(f"Area {area_id} not found")


def resolve_window(db: Session, business_id: int, venue_id: Optional[int] = None,
                   area_id: Optional[int] = None, start: Optional[datetime] = None,
                   end: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Fill a missing bound from the scope's local 'today' and normalise to naive UTC."""
    if start is None or end is None:
        day_start, day_end = today_window(_scope_timezone(db, business_id, venue_id, area_id))
        start = start if start is not None else day_start
        end = end if end is not None else day_end
    start, end = to_naive_utc(start), to_naive_utc(end)
    if start > end:
        raise InvalidRequest("Window start must not be after window end")
    return start, end


def _scoped_events(db: Session, columns, business_id: int, venue_id: Optional[int],
                   area_id: Optional[int], start: datetime, end: datetime):
    q = (
        db.query(*columns)
        .select_from(OccupancyEvent)
        .join(Area, Area.id == OccupancyEvent.area_id)
        .filter(
            OccupancyEvent.business_id == business_id,
            Area.status == AREA_ACTIVE,
            OccupancyEvent.timestamp >= start,
            OccupancyEvent.timestamp < end,
            or_(Area.last_reset_at.is_(None), OccupancyEvent.timestamp > Area.last_reset_at),
        )
    )
    if venue_id is not None:
        q = q.filter(OccupancyEvent.venue_id == venue_id)
    if area_id is not None:
        q = q.filter(OccupancyEvent.area_id == area_id)
    return q


def get_totals(db: Session, business_id: int, venue_id: Optional[int] = None,
               area_id: Optional[int] = None, start: Optional[datetime] = None,
               end: Optional[datetime] = None) -> TrafficTotals:
    _check_scope(db, business_id, venue_id, area_id)
    start, end = resolve_window(db, business_id, venue_id, area_id, start, end)

    total_in, total_out, count = _scoped_events(
        db, (_IN_EXPR, _OUT_EXPR, _COUNT_EXPR), business_id, venue_id, area_id, start, end
    ).one()
    total_in, total_out = int(total_in), int(total_out)
    totals = TrafficTotals(total_in=total_in, total_out=total_out,
                           net_delta=total_in - total_out, event_count=int(count))
    logger.debug(f"[TOTALS] biz={business_id} venue={venue_id} area={area_id} "
                 f"[{start:%Y-%m-%d %H:%M}, {end:%Y-%m-%d %H:%M}) → {totals}")
    return totals


def get_area_breakdown(db: Session, business_id: int, venue_id: Optional[int] = None,
                       start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict[int, TrafficTotals]:
    """Totals per active area in scope; areas without traffic report zeros."""
    _check_scope(db, business_id, venue_id, None)
    start, end = resolve_window(db, business_id, venue_id, None, start, end)

    areas = db.query(Area.id).filter(Area.business_id == business_id, Area.status == AREA_ACTIVE)
    if venue_id is not None:
        areas = areas.filter(Area.venue_id == venue_id)
    breakdown = {area_id: TrafficTotals() for (area_id,) in areas}

    rows = (
        _scoped_events(db, (OccupancyEvent.area_id, _IN_EXPR, _OUT_EXPR, _COUNT_EXPR),
                       business_id, venue_id, None, start, end)
        .group_by(OccupancyEvent.area_id)
        .all()
    )
    for area_id, total_in, total_out, count in rows:
        total_in, total_out = int(total_in), int(total_out)
        breakdown[area_id] = TrafficTotals(total_in, total_out, total_in - total_out, int(count))
    return breakdown


def get_hourly_traffic(db: Session, business_id: int, venue_id: Optional[int] = None,
                       area_id: Optional[int] = None, start: Optional[datetime] = None,
                       end: Optional[datetime] = None) -> list[dict]:
    """Entries/exits per UTC hour inside the window, oldest first, only hours with traffic."""
    _check_scope(db, business_id, venue_id, area_id)
    start, end = resolve_window(db, business_id, venue_id, area_id, start, end)

    rows = _scoped_events(db, (OccupancyEvent.timestamp, OccupancyEvent.delta),
                          business_id, venue_id, area_id, start, end).all()
    buckets: dict[datetime, dict] = {}
    for ts, delta in rows:
        hour = ts.replace(minute=0, second=0, microsecond=0)
        bucket = buckets.setdefault(hour, {"hour_start": hour, "entries": 0, "exits": 0,
                                           "net_delta": 0, "event_count": 0})
        if delta > 0:
            bucket["entries"] += delta
        elif delta < 0:
            bucket["exits"] += -delta
        bucket["net_delta"] += delta
        bucket["event_count"] += 1
    return [buckets[h] for h in sorted(buckets)]


def get_current_occupancy(db: Session, business_id: int, venue_id: Optional[int] = None,
                          area_id: Optional[int] = None) -> int:
    """Live occupancy over a scope: the sum of area snapshots."""
    q = db.query(func.coalesce(func.sum(Area.current_occupancy), 0)).filter(
        Area.business_id == business_id, Area.status == AREA_ACTIVE
    )
    if venue_id is not None:
        q = q.filter(Area.venue_id == venue_id)
    if area_id is not None:
        q = q.filter(Area.id == area_id)
    return int(q.scalar() or 0)
