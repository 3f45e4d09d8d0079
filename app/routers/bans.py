# app/routers/bans.py
"""Patron bans — create, list, revoke."""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.ban import BanCreate, BanRevoke, BanOut
from app.services.auth_service import require_scope
from app.services.ban_service import create_ban, revoke_ban, list_bans

router = APIRouter()


@router.post("/bans", response_model=BanOut, summary="Ban a patron")
def post_ban(body: BanCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    return create_ban(db, body.business_id, actor_id, body.person.model_dump(), body.reason,
                      scope=body.scope, venue_ids=body.venue_ids, notes=body.notes,
                      starts_at=body.starts_at, ends_at=body.ends_at)


@router.get("/bans", response_model=list[BanOut], summary="List bans")
def get_bans(business_id: int, status: Optional[str] = None, limit: int = 100,
             actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    require_scope(db, actor_id, business_id)
    return list_bans(db, business_id, status, limit)


@router.put("/bans/{ban_id}/revoke", response_model=BanOut, summary="Revoke a ban")
def put_revoke_ban(ban_id: int, body: BanRevoke, actor_id: str = Depends(get_actor_id),
                   db: Session = Depends(get_db)):
    return revoke_ban(db, ban_id, body.business_id, actor_id, body.reason)
