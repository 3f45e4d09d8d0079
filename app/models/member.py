# app/models/member.py
"""
Business membership — which users may act on which business and venues.
venue_ids is null for business-wide members (owners, admins).
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint
from app.database import Base

ROLE_OWNER = "OWNER"
ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_STAFF = "STAFF"
ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF)


class BusinessMember(Base):
    __tablename__ = "business_members"
    __table_args__ = (UniqueConstraint("business_id", "user_id", name="uq_business_members_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=ROLE_STAFF)
    venue_ids = Column(JSON)                 # list[int] or null = all venues
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<BusinessMember biz={self.business_id} user={self.user_id} role={self.role}>"
