# app/schemas/ban.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Literal, Optional


class PersonIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    id_last4: Optional[str] = None
    id_number: Optional[str] = None


class BanCreate(BaseModel):
    business_id: int
    person: PersonIn
    reason: str
    scope: Literal["BUSINESS", "VENUE"] = "BUSINESS"
    venue_ids: Optional[list[int]] = None
    notes: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class BanRevoke(BaseModel):
    business_id: int
    reason: Optional[str] = None


class BanOut(BaseModel):
    id: int
    business_id: int
    person_id: int
    scope: str
    venue_ids: Optional[list[int]]
    status: str
    reason: str
    notes: Optional[str]
    starts_at: datetime
    ends_at: Optional[datetime]
    created_by: Optional[str]
    created_at: datetime
    removed_by: Optional[str]
    removed_at: Optional[datetime]
    removal_reason: Optional[str]

    class Config:
        from_attributes = True
