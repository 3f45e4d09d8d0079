# app/models/patron_ban.py
"""
Patron bans. A BannedPerson holds the identity (name/DOB/ID-last-4 or hashed full ID);
each PatronBan scopes that person out of the whole business or a list of venues.
BanEnforcementEvent is the audit row written when a banned patron is turned away.
"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Text, ForeignKey, JSON
from app.database import Base

BAN_ACTIVE = "ACTIVE"
BAN_EXPIRED = "EXPIRED"
BAN_REMOVED = "REMOVED"

SCOPE_BUSINESS = "BUSINESS"
SCOPE_VENUE = "VENUE"

ENFORCEMENT_BLOCKED = "BLOCKED"


class BannedPerson(Base):
    __tablename__ = "banned_persons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    date_of_birth = Column(Date)
    id_last4 = Column(String(4))
    id_hash = Column(String(64))             # sha256 of the full ID number, when captured
    person_key = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<BannedPerson {self.id} {self.last_name}, {self.first_name}>"


class PatronBan(Base):
    __tablename__ = "patron_bans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    person_id = Column(Integer, ForeignKey("banned_persons.id"), nullable=False, index=True)
    scope = Column(String(20), nullable=False, default=SCOPE_BUSINESS)   # BUSINESS | VENUE
    venue_ids = Column(JSON)                 # list[int] when scope=VENUE
    status = Column(String(20), nullable=False, default=BAN_ACTIVE, index=True)
    reason = Column(String(100), nullable=False)
    notes = Column(Text)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime)               # null = permanent
    created_by = Column(String(100))
    created_at = Column(DateTime, nullable=False)
    removed_by = Column(String(100))
    removed_at = Column(DateTime)
    removal_reason = Column(Text)

    def __repr__(self):
        return f"<PatronBan {self.id} person={self.person_id} scope={self.scope} status={self.status}>"


class BanEnforcementEvent(Base):
    __tablename__ = "ban_enforcement_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False)
    area_id = Column(Integer, ForeignKey("areas.id"))
    ban_id = Column(Integer, ForeignKey("patron_bans.id"), nullable=False)
    person_key = Column(String(64), nullable=False)
    result = Column(String(20), nullable=False, default=ENFORCEMENT_BLOCKED)
    device_id = Column(String(100))
    user_id = Column(String(100))
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<BanEnforcementEvent {self.id} ban={self.ban_id} result={self.result}>"
