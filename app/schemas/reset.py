# app/schemas/reset.py
from pydantic import BaseModel
from typing import Literal, Optional


class ResetIn(BaseModel):
    scope: Literal["BUSINESS", "VENUE", "AREA"]
    business_id: int
    venue_id: Optional[int] = None
    area_id: Optional[int] = None
    reason: Optional[str] = None


class FactoryResetIn(BaseModel):
    business_id: int
    reason: Optional[str] = None


class AreaResetOut(BaseModel):
    area_id: int
    success: bool
    clamped_delta: int
    event_id: Optional[int]
    error: Optional[str]


class ResetSummaryOut(BaseModel):
    scope: str
    business_id: int
    affected_area_ids: list[int]
    failed_area_ids: list[int]
    results: list[AreaResetOut]
