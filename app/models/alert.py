# app/models/alert.py
"""
Alerts table — capacity warnings and ban blocks raised by the ledger.
Used by ledger_service (capacity) and scan_service (ban blocks).
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(50), nullable=False, index=True)
    business_id = Column(Integer, nullable=False, index=True)
    venue_id = Column(Integer)
    area_id = Column(Integer)
    description = Column(Text)
    is_resolved = Column(Integer, default=0, nullable=False)
    triggered_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} resolved={self.is_resolved}>"
