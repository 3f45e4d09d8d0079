# app/schemas/scan.py
from pydantic import BaseModel, Field
from typing import Optional
from app.schemas.ban import PersonIn


class ScanIn(BaseModel):
    business_id: int
    venue_id: int
    area_id: int
    age: Optional[int] = Field(default=None, ge=0)
    sex: Optional[str] = None
    zip: Optional[str] = None
    id_expired: bool = False
    person: Optional[PersonIn] = None       # identity facts used for the ban lookup
    device_id: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=200)


class ScanOut(BaseModel):
    scan_id: int
    outcome: str
    reason: Optional[str]
    new_occupancy: Optional[int]
    event_id: Optional[int]
