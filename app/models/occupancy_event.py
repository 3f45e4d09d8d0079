# app/models/occupancy_event.py
"""
Occupancy event log — the append-only source of truth for every change to an
area's occupancy (clicker taps, bulk corrections, ID-scan entries, resets).

Rows are never updated or deleted. `delta` is the applied (possibly clamped) change;
`requested_delta` is what the device asked for. `flow_type` is a reporting label only.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint, Index
from app.database import Base

FLOW_IN = "IN"
FLOW_OUT = "OUT"

EVENT_TAP = "TAP"
EVENT_BULK = "BULK"
EVENT_SCAN = "SCAN"
EVENT_RESET = "RESET"
EVENT_TYPES = (EVENT_TAP, EVENT_BULK, EVENT_SCAN, EVENT_RESET)


class OccupancyEvent(Base):
    __tablename__ = "occupancy_events"
    __table_args__ = (
        UniqueConstraint("area_id", "idempotency_key", name="uq_occupancy_events_idempotency"),
        Index("ix_occupancy_events_area_timestamp", "area_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=False)
    delta = Column(Integer, nullable=False)
    requested_delta = Column(Integer, nullable=False)
    occupancy_after = Column(Integer, nullable=False)
    flow_type = Column(String(3), nullable=False)          # IN | OUT
    event_type = Column(String(10), nullable=False, index=True)
    source = Column(String(50), nullable=False)            # manual | clicker | scan | reset ...
    device_id = Column(String(100))
    gender = Column(String(10))
    idempotency_key = Column(String(200), nullable=False)
    user_id = Column(String(100))
    reason = Column(Text)
    timestamp = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<OccupancyEvent {self.id} area={self.area_id} delta={self.delta} type={self.event_type}>"
