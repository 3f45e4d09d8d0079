# app/schemas/setup.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class BusinessCreate(BaseModel):
    name: str
    timezone: Optional[str] = None


class BusinessOut(BaseModel):
    id: int
    name: str
    timezone: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class VenueCreate(BaseModel):
    business_id: int
    name: str
    timezone: Optional[str] = None


class VenueOut(BaseModel):
    id: int
    business_id: int
    name: str
    timezone: Optional[str]
    status: str

    class Config:
        from_attributes = True


class AreaCreate(BaseModel):
    business_id: int
    venue_id: int
    name: str
    capacity: Optional[int] = Field(default=None, ge=0)


class AreaCapacityUpdate(BaseModel):
    business_id: int
    capacity: int = Field(ge=0)


class MemberCreate(BaseModel):
    business_id: int
    user_id: str
    role: str = "STAFF"
    venue_ids: Optional[list[int]] = None


class MemberOut(BaseModel):
    id: int
    business_id: int
    user_id: str
    role: str
    venue_ids: Optional[list[int]]

    class Config:
        from_attributes = True
