# app/services/venue_service.py
"""
Tenant setup: businesses, venues, areas and memberships.
Areas are soft-deleted only; their event history stays in the event store.
"""

from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.exceptions import AreaNotFound, InvalidRequest, Unauthorized
from app.models.area import Area, AREA_ACTIVE, AREA_DELETED
from app.models.business import Business
from app.models.member import BusinessMember, ROLES, ROLE_OWNER, ROLE_ADMIN
from app.models.venue import Venue, VENUE_ACTIVE
from app.services.auth_service import require_scope, require_business_wide
from app.utils.time import utcnow, resolve_timezone
from app.utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_ROLES = {ROLE_OWNER, ROLE_ADMIN}


def create_business(db: Session, name: str, owner_user_id: str, timezone: Optional[str] = None) -> Business:
    """Create a tenant and make the caller its owner."""
    if timezone:
        resolve_timezone(timezone)
    now = utcnow()
    business = Business(name=name, timezone=timezone or settings.DEFAULT_TIMEZONE, created_at=now)
    db.add(business)
    db.flush()
    db.add(BusinessMember(business_id=business.id, user_id=owner_user_id, role=ROLE_OWNER,
                          venue_ids=None, created_at=now))
    db.commit()
    logger.info(f"Business {business.id} '{name}' created by {owner_user_id}")
    return business


def create_venue(db: Session, business_id: int, actor_id: str, name: str,
                 timezone: Optional[str] = None) -> Venue:
    require_business_wide(require_scope(db, actor_id, business_id), roles=ADMIN_ROLES)
    venue = Venue(business_id=business_id, name=name, timezone=timezone,
                  status=VENUE_ACTIVE, created_at=utcnow())
    db.add(venue)
    db.commit()
    logger.info(f"Venue {venue.id} '{name}' created for business {business_id}")
    return venue


def create_area(db: Session, business_id: int, venue_id: int, actor_id: str, name: str,
                capacity: Optional[int] = None) -> Area:
    member = require_scope(db, actor_id, business_id, venue_id)
    if member.role not in ADMIN_ROLES:
        raise Unauthorized(f"Role {member.role} may not create areas")
    venue = db.query(Venue).filter(Venue.id == venue_id, Venue.business_id == business_id,
                                   Venue.status == VENUE_ACTIVE).first()
    if not venue:
        raise AreaNotFound(f"Venue {venue_id} not found")
    if capacity is not None and capacity < 0:
        raise InvalidRequest("Capacity must not be negative")

    area = Area(business_id=business_id, venue_id=venue_id, name=name,
                capacity=settings.DEFAULT_AREA_CAPACITY if capacity is None else capacity,
                current_occupancy=0, last_reset_at=None, updated_at=utcnow(), status=AREA_ACTIVE)
    db.add(area)
    db.commit()
    logger.info(f"Area {area.id} '{name}' created in venue {venue_id} (capacity {area.capacity})")
    return area


def _get_area(db: Session, business_id: int, area_id: int) -> Area:
    area = db.query(Area).filter(Area.id == area_id, Area.business_id == business_id,
                                 Area.status == AREA_ACTIVE).first()
    if not area:
        raise AreaNotFound(f"Area {area_id} not found")
    return area


def set_area_capacity(db: Session, business_id: int, area_id: int, actor_id: str, capacity: int) -> Area:
    if capacity < 0:
        raise InvalidRequest("Capacity must not be negative")
    area = _get_area(db, business_id, area_id)
    member = require_scope(db, actor_id, business_id, area.venue_id)
    if member.role not in ADMIN_ROLES:
        raise Unauthorized(f"Role {member.role} may not change capacity")
    area.capacity = capacity
    db.commit()
    logger.info(f"Area {area_id} capacity set to {capacity} by {actor_id}")
    return area


def soft_delete_area(db: Session, business_id: int, area_id: int, actor_id: str) -> Area:
    area = _get_area(db, business_id, area_id)
    member = require_scope(db, actor_id, business_id, area.venue_id)
    if member.role not in ADMIN_ROLES:
        raise Unauthorized(f"Role {member.role} may not delete areas")
    area.status = AREA_DELETED
    db.commit()
    logger.info(f"Area {area_id} soft-deleted by {actor_id}")
    return area


def add_member(db: Session, business_id: int, actor_id: str, user_id: str, role: str,
               venue_ids: Optional[list[int]] = None) -> BusinessMember:
    require_business_wide(require_scope(db, actor_id, business_id), roles=ADMIN_ROLES)
    role = role.upper()
    if role not in ROLES:
        raise InvalidRequest(f"Unknown role '{role}'")

    member = db.query(BusinessMember).filter(BusinessMember.business_id == business_id,
                                             BusinessMember.user_id == user_id).first()
    if member:
        member.role = role
        member.venue_ids = venue_ids
    else:
        member = BusinessMember(business_id=business_id, user_id=user_id, role=role,
                                venue_ids=venue_ids, created_at=utcnow())
        db.add(member)
    db.commit()
    logger.info(f"Member {user_id} set to {role} on business {business_id} (venues={venue_ids})")
    return member
