# app/routers/reset.py
"""Reset counts — zero occupancy via compensating RESET events."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.reset import ResetIn, FactoryResetIn, ResetSummaryOut, AreaResetOut
from app.services.reset_service import ResetSummary, reset_counts, factory_reset

router = APIRouter()


def _to_out(summary: ResetSummary) -> ResetSummaryOut:
    return ResetSummaryOut(
        scope=summary.scope,
        business_id=summary.business_id,
        affected_area_ids=summary.affected_area_ids,
        failed_area_ids=summary.failed_area_ids,
        results=[AreaResetOut(area_id=r.area_id, success=r.success, clamped_delta=r.clamped_delta,
                              event_id=r.event_id, error=r.error) for r in summary.results],
    )


@router.post("/reset", response_model=ResetSummaryOut, summary="Reset area / venue / business counts")
def post_reset(body: ResetIn, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """
    Resets every area in scope in its own transaction.
    Always returns 200 once started; check failed_area_ids for partial failures.
    """
    summary = reset_counts(db, body.scope, body.business_id, actor_id,
                           venue_id=body.venue_id, area_id=body.area_id, reason=body.reason)
    return _to_out(summary)


@router.post("/reset/factory", response_model=ResetSummaryOut, summary="Reset every area of a business")
def post_factory_reset(body: FactoryResetIn, actor_id: str = Depends(get_actor_id),
                       db: Session = Depends(get_db)):
    return _to_out(factory_reset(db, body.business_id, actor_id, body.reason))
