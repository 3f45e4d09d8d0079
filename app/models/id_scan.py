# app/models/id_scan.py
"""
ID scan log — one row per scanned ID with the door decision.
Accepted scans reference the occupancy event the ledger wrote for them.
A resent scan (same area + idempotency_key) maps back to its first row.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from app.database import Base

SCAN_ACCEPTED = "ACCEPTED"
SCAN_DENIED = "DENIED"

DENY_UNDERAGE = "UNDERAGE"
DENY_BANNED = "BANNED"
DENY_EXPIRED_ID = "EXPIRED_ID"


class IdScan(Base):
    __tablename__ = "id_scans"
    __table_args__ = (
        UniqueConstraint("area_id", "idempotency_key", name="uq_id_scans_idempotency"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    area_id = Column(Integer, ForeignKey("areas.id"))
    outcome = Column(String(10), nullable=False)           # ACCEPTED | DENIED
    reason = Column(String(20))                            # UNDERAGE | BANNED | EXPIRED_ID
    age = Column(Integer)
    sex = Column(String(10))
    zip = Column(String(10))
    person_key = Column(String(64))
    occupancy_event_id = Column(Integer, ForeignKey("occupancy_events.id"))
    ban_id = Column(Integer, ForeignKey("patron_bans.id"))
    idempotency_key = Column(String(200), nullable=False)
    device_id = Column(String(100))
    user_id = Column(String(100))
    scanned_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<IdScan {self.id} outcome={self.outcome} reason={self.reason}>"
