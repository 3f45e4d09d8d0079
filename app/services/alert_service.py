# app/services/alert_service.py
"""
Shared alert creation service.
Used by ledger_service (capacity) and scan_service (banned patron turned away).
Extend here to add push notifications, SMS, email, etc.
"""

from datetime import datetime
from sqlalchemy.orm import Session
from app.models.alert import Alert
from app.models.area import Area
from app.config import settings
from app.utils.time import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

CAPACITY_WARNING = "capacity_warning"
CAPACITY_REACHED = "capacity_reached"
BAN_BLOCKED = "ban_blocked"


def create_alert(db: Session, alert_type, business_id, venue_id, area_id, description) -> Alert:
    """Create and persist an alert record. Always commits immediately."""
    alert = Alert(alert_type=alert_type, business_id=business_id, venue_id=venue_id,
                  area_id=area_id, description=description,
                  is_resolved=0, triggered_at=utcnow())
    db.add(alert)
    db.commit()
    logger.warning(f"[ALERT][{alert_type.upper()}] {description}")
    return alert


def check_capacity(db: Session, area: Area):
    """
    Raise a capacity alert when an area crosses the warning threshold or fills up.
    An unresolved alert of the same type for the area suppresses duplicates.
    """
    if not area.capacity:
        return None

    ratio = area.current_occupancy / area.capacity
    if ratio >= 1:
        alert_type = CAPACITY_REACHED
    elif ratio >= settings.CAPACITY_ALERT_THRESHOLD:
        alert_type = CAPACITY_WARNING
    else:
        return None

    open_alert = db.query(Alert).filter(
        Alert.area_id == area.id, Alert.alert_type == alert_type, Alert.is_resolved == 0
    ).first()
    if open_alert:
        return None

    return create_alert(db, alert_type, area.business_id, area.venue_id, area.id,
                        f"Area {area.name} at {int(ratio * 100)}% capacity "
                        f"({area.current_occupancy}/{area.capacity})")


def resolve_alert(db: Session, alert: Alert, when: datetime = None) -> Alert:
    alert.is_resolved = 1
    alert.resolved_at = when or utcnow()
    db.commit()
    return alert
