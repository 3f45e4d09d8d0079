# app/routers/alerts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.exceptions import NotFound
from app.models.alert import Alert
from app.schemas.alert import AlertOut
from app.services.alert_service import resolve_alert
from app.services.auth_service import require_scope, require_read_scope
from typing import Optional

router = APIRouter()

@router.get("/alerts", response_model=list[AlertOut], summary="All alerts — filterable by type")
def get_all_alerts(
    business_id: int,
    venue_id: Optional[int] = None,
    alert_type: Optional[str] = None,
    is_resolved: Optional[int] = None,
    limit: int = 50,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Capacity and ban alerts for a business or one venue. Filter by alert_type or is_resolved."""
    require_read_scope(db, actor_id, business_id, venue_id)
    q = db.query(Alert).filter(Alert.business_id == business_id)
    if venue_id is not None:
        q = q.filter(Alert.venue_id == venue_id)
    if alert_type:
        q = q.filter(Alert.alert_type == alert_type)
    if is_resolved is not None:
        q = q.filter(Alert.is_resolved == is_resolved)
    return q.order_by(Alert.triggered_at.desc()).limit(limit).all()


@router.put("/alerts/{alert_id}/resolve", response_model=AlertOut, summary="Resolve an alert")
def put_resolve_alert(alert_id: int, business_id: int, actor_id: str = Depends(get_actor_id),
                      db: Session = Depends(get_db)):
    alert = db.query(Alert).filter(Alert.id == alert_id, Alert.business_id == business_id).first()
    if not alert:
        raise NotFound("Alert not found")
    require_scope(db, actor_id, business_id, alert.venue_id)
    return resolve_alert(db, alert)
