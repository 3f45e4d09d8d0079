# app/routers/occupancy.py
"""Live occupancy snapshots per area + snapshot repair."""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.models.area import Area
from app.schemas.occupancy import AreaSnapshotOut, RebuildOut
from app.services.auth_service import require_scope, require_read_scope
from app.services.snapshot_service import get_snapshot, list_snapshots, rebuild_snapshot

router = APIRouter()


def _to_out(area: Area) -> AreaSnapshotOut:
    out = AreaSnapshotOut.model_validate(area)
    out.occupancy_percent = round((area.current_occupancy / area.capacity) * 100, 1) if area.capacity else 0
    out.is_full = bool(area.capacity) and area.current_occupancy >= area.capacity
    return out


@router.get("/occupancy", response_model=list[AreaSnapshotOut])
def get_all_occupancy(business_id: int, venue_id: Optional[int] = None,
                      actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """Current occupancy for every active area of a business (optionally one venue)."""
    require_read_scope(db, actor_id, business_id, venue_id)
    return [_to_out(a) for a in list_snapshots(db, business_id, venue_id)]


@router.get("/occupancy/{area_id}", response_model=AreaSnapshotOut)
def get_area_occupancy(area_id: int, business_id: int, actor_id: str = Depends(get_actor_id),
                       db: Session = Depends(get_db)):
    area = get_snapshot(db, area_id, business_id)
    require_scope(db, actor_id, business_id, area.venue_id)
    return _to_out(area)


@router.post("/occupancy/{area_id}/rebuild", response_model=RebuildOut,
             summary="Rebuild an area snapshot from its events")
def rebuild_area_occupancy(area_id: int, business_id: int, actor_id: str = Depends(get_actor_id),
                           db: Session = Depends(get_db)):
    """Replays events since the last reset and overwrites the cached occupancy."""
    before, after = rebuild_snapshot(db, area_id, business_id, actor_id)
    return RebuildOut(area_id=area_id, before=before, after=after)
