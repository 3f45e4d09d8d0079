# app/routers/events.py
"""Occupancy event audit log viewer."""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.occupancy import OccupancyEventOut
from app.services.auth_service import require_read_scope
from app.services.event_store import list_events

router = APIRouter()


@router.get("/events", response_model=list[OccupancyEventOut], summary="List occupancy events")
def get_events(business_id: int, venue_id: Optional[int] = None, area_id: Optional[int] = None,
               event_type: Optional[str] = None, limit: int = 50,
               actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """Returns the append-only event log, newest first. Resets appear as RESET events."""
    require_read_scope(db, actor_id, business_id, venue_id, area_id)
    return list_events(db, business_id, venue_id, area_id, event_type, min(limit, 500))
