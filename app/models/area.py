# app/models/area.py
"""
Areas table — a sub-location of a venue with its own capacity and occupancy counter.

The row doubles as the occupancy snapshot: current_occupancy and last_reset_at are
written only by the ledger (apply_delta, reset_counts, rebuild_snapshot) and can be
rebuilt by replaying occupancy_events after last_reset_at.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from app.database import Base

AREA_ACTIVE = "ACTIVE"
AREA_DELETED = "DELETED"


class Area(Base):
    __tablename__ = "areas"
    __table_args__ = (
        CheckConstraint("current_occupancy >= 0", name="ck_areas_occupancy_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    capacity = Column(Integer)
    current_occupancy = Column(Integer, default=0, nullable=False)
    last_reset_at = Column(DateTime)         # null until the first reset
    updated_at = Column(DateTime)
    status = Column(String(20), default=AREA_ACTIVE, nullable=False)

    def __repr__(self):
        return f"<Area {self.id} {self.name} occ={self.current_occupancy}/{self.capacity}>"
