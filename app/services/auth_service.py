# app/services/auth_service.py
"""
Tenant scoping checks. A caller may act on a business only if it is a member,
and on a venue only if its membership is business-wide or lists that venue.
"""

from typing import Iterable, Optional
from sqlalchemy.orm import Session
from app.models.area import Area, AREA_ACTIVE
from app.models.member import BusinessMember
from app.exceptions import AreaNotFound, Unauthorized
from app.utils.logger import get_logger

logger = get_logger(__name__)


def require_scope(db: Session, actor_id: Optional[str], business_id: int,
                  venue_id: Optional[int] = None) -> BusinessMember:
    """Return the actor's membership, or raise Unauthorized."""
    if not actor_id:
        raise Unauthorized("Missing actor identity")

    member = db.query(BusinessMember).filter(
        BusinessMember.business_id == business_id,
        BusinessMember.user_id == actor_id,
    ).first()
    if not member:
        logger.warning(f"[AUTH] {actor_id} is not a member of business {business_id}")
        raise Unauthorized()

    if venue_id is not None and member.venue_ids is not None and venue_id not in member.venue_ids:
        logger.warning(f"[AUTH] {actor_id} has no access to venue {venue_id}")
        raise Unauthorized(f"Actor is not scoped to venue {venue_id}")
    return member


def require_business_wide(member: BusinessMember, roles: Optional[Iterable[str]] = None):
    """Business-wide operations need a membership not restricted to venues."""
    if member.venue_ids is not None:
        raise Unauthorized("Operation requires business-wide access")
    if roles is not None and member.role not in roles:
        raise Unauthorized(f"Role {member.role} may not perform this operation")


def require_read_scope(db: Session, actor_id: Optional[str], business_id: int,
                       venue_id: Optional[int] = None, area_id: Optional[int] = None) -> BusinessMember:
    """
    Scope check for reads over business / venue / area.
    An area is checked against its own venue; a query with neither venue nor area
    spans the whole business and needs business-wide access.
    """
    member = require_scope(db, actor_id, business_id, venue_id)
    if area_id is not None:
        q = db.query(Area).filter(Area.id == area_id, Area.business_id == business_id,
                                  Area.status == AREA_ACTIVE)
        if venue_id is not None:
            q = q.filter(Area.venue_id == venue_id)
        area = q.first()
        if not area:
            raise AreaNotFound(f"Area {area_id} not found")
        return require_scope(db, actor_id, business_id, area.venue_id)

    if venue_id is None:
        require_business_wide(member)
    return member
