# app/models/venue.py
"""
Venues table — a physical location owned by a business.
Soft-deleted venues (status=DELETED) are invisible to the ledger.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.database import Base

VENUE_ACTIVE = "ACTIVE"
VENUE_DELETED = "DELETED"


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    timezone = Column(String(64))            # Falls back to business timezone
    status = Column(String(20), default=VENUE_ACTIVE, nullable=False)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Venue {self.id} name={self.name} status={self.status}>"
