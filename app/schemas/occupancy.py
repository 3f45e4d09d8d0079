# app/schemas/occupancy.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional


class DeltaIn(BaseModel):
    business_id: int
    venue_id: int
    delta: int
    source: str = "manual"
    event_type: Literal["TAP", "BULK"] = "TAP"
    device_id: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=200)
    gender: Optional[str] = None


class DeltaOut(BaseModel):
    new_occupancy: int
    event_id: int
    applied_delta: int
    duplicate: bool


class AreaSnapshotOut(BaseModel):
    id: int
    business_id: int
    venue_id: int
    name: str
    capacity: Optional[int]
    current_occupancy: int
    last_reset_at: Optional[datetime]
    updated_at: Optional[datetime]
    occupancy_percent: Optional[float] = None
    is_full: Optional[bool] = None

    class Config:
        from_attributes = True


class RebuildOut(BaseModel):
    area_id: int
    before: int
    after: int


class TotalsOut(BaseModel):
    total_in: int
    total_out: int
    net_delta: int
    event_count: int
    start: datetime
    end: datetime


class AreaTotalsOut(BaseModel):
    area_id: int
    total_in: int
    total_out: int
    net_delta: int
    event_count: int


class HourlyTrafficOut(BaseModel):
    hour_start: datetime
    entries: int
    exits: int
    net_delta: int
    event_count: int


class OccupancyEventOut(BaseModel):
    id: int
    business_id: int
    venue_id: int
    area_id: int
    delta: int
    requested_delta: int
    occupancy_after: int
    flow_type: str
    event_type: str
    source: str
    device_id: Optional[str]
    gender: Optional[str]
    user_id: Optional[str]
    reason: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True
