# app/models/business.py
"""
Businesses table — the tenant root. Every venue, area, event and ban belongs to one.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    timezone = Column(String(64))            # IANA name, e.g. America/New_York
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Business {self.id} name={self.name}>"
