# app/routers/ledger.py
"""Occupancy ledger — apply a tap / bulk correction to an area."""

import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.occupancy import DeltaIn, DeltaOut
from app.services.ledger_service import AreaScope, apply_delta, retry_on_conflict

router = APIRouter()


@router.post("/areas/{area_id}/delta", response_model=DeltaOut, summary="Apply an occupancy delta")
def post_delta(area_id: int, body: DeltaIn, actor_id: str = Depends(get_actor_id),
               db: Session = Depends(get_db)):
    """
    Atomically applies a signed delta to the area and appends one event.
    Resending the same idempotency_key returns the original result with duplicate=true.
    """
    # Fix the key before retrying so a conflict retry can never double-apply
    key = body.idempotency_key or uuid.uuid4().hex
    scope = AreaScope(business_id=body.business_id, venue_id=body.venue_id, area_id=area_id)
    result = retry_on_conflict(
        apply_delta, db, scope, body.delta, source=body.source, idempotency_key=key,
        actor_id=actor_id, device_id=body.device_id, event_type=body.event_type,
        gender=body.gender,
    )
    return DeltaOut(new_occupancy=result.new_occupancy, event_id=result.event_id,
                    applied_delta=result.applied_delta, duplicate=result.duplicate)
