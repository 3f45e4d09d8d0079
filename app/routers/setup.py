# app/routers/setup.py
"""Tenant setup — businesses, venues, areas, members."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.occupancy import AreaSnapshotOut
from app.schemas.setup import (
    BusinessCreate, BusinessOut, VenueCreate, VenueOut, AreaCreate, AreaCapacityUpdate,
    MemberCreate, MemberOut,
)
from app.services import venue_service

router = APIRouter()


@router.post("/businesses", response_model=BusinessOut, summary="Create a business (caller becomes owner)")
def post_business(body: BusinessCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    return venue_service.create_business(db, body.name, actor_id, body.timezone)


@router.post("/venues", response_model=VenueOut)
def post_venue(body: VenueCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    return venue_service.create_venue(db, body.business_id, actor_id, body.name, body.timezone)


@router.post("/areas", response_model=AreaSnapshotOut)
def post_area(body: AreaCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    return venue_service.create_area(db, body.business_id, body.venue_id, actor_id, body.name, body.capacity)


@router.put("/areas/{area_id}/capacity", response_model=AreaSnapshotOut, summary="Set max capacity for an area")
def put_area_capacity(area_id: int, body: AreaCapacityUpdate, actor_id: str = Depends(get_actor_id),
                      db: Session = Depends(get_db)):
    return venue_service.set_area_capacity(db, body.business_id, area_id, actor_id, body.capacity)


@router.delete("/areas/{area_id}", summary="Soft-delete an area")
def delete_area(area_id: int, business_id: int, actor_id: str = Depends(get_actor_id),
                db: Session = Depends(get_db)):
    area = venue_service.soft_delete_area(db, business_id, area_id, actor_id)
    return {"area_id": area.id, "status": area.status}


@router.post("/members", response_model=MemberOut, summary="Add or update a business member")
def post_member(body: MemberCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    return venue_service.add_member(db, body.business_id, actor_id, body.user_id, body.role, body.venue_ids)
