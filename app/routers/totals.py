# app/routers/totals.py
"""Traffic totals — in/out/net/count since the last reset, windowed."""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.occupancy import TotalsOut, AreaTotalsOut, HourlyTrafficOut
from app.services.auth_service import require_read_scope
from app.services.totals_service import (
    get_totals, get_area_breakdown, get_hourly_traffic, resolve_window,
)

router = APIRouter()


@router.get("/totals", response_model=TotalsOut, summary="Traffic totals for a scope")
def get_traffic_totals(business_id: int, venue_id: Optional[int] = None,
                       area_id: Optional[int] = None, start: Optional[datetime] = None,
                       end: Optional[datetime] = None, actor_id: str = Depends(get_actor_id),
                       db: Session = Depends(get_db)):
    """Defaults to today in the venue's timezone when start/end are omitted."""
    require_read_scope(db, actor_id, business_id, venue_id, area_id)
    window_start, window_end = resolve_window(db, business_id, venue_id, area_id, start, end)
    totals = get_totals(db, business_id, venue_id, area_id, window_start, window_end)
    return TotalsOut(**totals.as_dict(), start=window_start, end=window_end)


@router.get("/totals/areas", response_model=list[AreaTotalsOut], summary="Traffic totals per area")
def get_totals_by_area(business_id: int, venue_id: Optional[int] = None,
                       start: Optional[datetime] = None, end: Optional[datetime] = None,
                       actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    require_read_scope(db, actor_id, business_id, venue_id)
    breakdown = get_area_breakdown(db, business_id, venue_id, start, end)
    return [AreaTotalsOut(area_id=aid, **t.as_dict()) for aid, t in sorted(breakdown.items())]


@router.get("/totals/hourly", response_model=list[HourlyTrafficOut], summary="Hourly entries/exits")
def get_hourly_totals(business_id: int, venue_id: Optional[int] = None,
                      area_id: Optional[int] = None, start: Optional[datetime] = None,
                      end: Optional[datetime] = None, actor_id: str = Depends(get_actor_id),
                      db: Session = Depends(get_db)):
    require_read_scope(db, actor_id, business_id, venue_id, area_id)
    return get_hourly_traffic(db, business_id, venue_id, area_id, start, end)
