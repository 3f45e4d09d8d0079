# app/services/ban_service.py
"""
Identity/Ban collaborator.

Bans attach to a BannedPerson identified by a person_key: a sha256 of the full ID
number when the scanner captured it, otherwise of the normalised
last name / first name / date of birth / ID last-4.
The ledger consults find_active_ban before accepting a scan-sourced entry.
"""

import hashlib
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.patron_ban import (
    BannedPerson, PatronBan, BanEnforcementEvent,
    BAN_ACTIVE, BAN_EXPIRED, BAN_REMOVED, SCOPE_BUSINESS, SCOPE_VENUE, ENFORCEMENT_BLOCKED,
)
from app.models.member import ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER
from app.models.venue import Venue, VENUE_ACTIVE
from app.exceptions import InvalidRequest, NotFound, Unauthorized
from app.services.auth_service import require_scope
from app.utils.time import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

BAN_MANAGER_ROLES = {ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER}


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def make_person_key(first_name: Optional[str] = None, last_name: Optional[str] = None,
                    date_of_birth: Optional[date] = None, id_last4: Optional[str] = None,
                    id_number: Optional[str] = None) -> str:
    """Stable identity key for ban lookups."""
    if id_number:
        return _digest("id:" + "".join(id_number.split()).upper())
    if not last_name or not date_of_birth:
        raise InvalidRequest("Identity needs a full ID number, or a last name and date of birth")
    parts = [
        last_name.strip().lower(),
        (first_name or "").strip().lower(),
        date_of_birth.isoformat(),
        (id_last4 or "").strip(),
    ]
    return _digest("name:" + "|".join(parts))


def _covers_venue(ban: PatronBan, venue_id: int) -> bool:
    if ban.scope == SCOPE_BUSINESS:
        return True
    return venue_id in (ban.venue_ids or [])


def find_active_ban(db: Session, person_key: str, business_id: int, venue_id: int,
                    now: Optional[datetime] = None) -> Optional[PatronBan]:
    """Return the first ACTIVE, in-effect ban for this person covering the venue."""
    now = now or utcnow()
    bans = (
        db.query(PatronBan)
        .join(BannedPerson, BannedPerson.id == PatronBan.person_id)
        .filter(
            BannedPerson.person_key == person_key,
            PatronBan.business_id == business_id,
            PatronBan.status == BAN_ACTIVE,
            PatronBan.starts_at <= now,
        )
        .order_by(PatronBan.id)
        .all()
    )
    for ban in bans:
        if ban.ends_at is not None and ban.ends_at <= now:
            continue
        if _covers_venue(ban, venue_id):
            return ban
    return None


def is_banned(db: Session, person_key: str, venue_id: int) -> bool:
    venue = db.query(Venue).filter(Venue.id == venue_id).first()
    if not venue:
        return False
    return find_active_ban(db, person_key, venue.business_id, venue_id) is not None


def record_enforcement(db: Session, ban: PatronBan, venue_id: int, area_id: Optional[int],
                       person_key: str, device_id: Optional[str] = None,
                       user_id: Optional[str] = None) -> BanEnforcementEvent:
    """Stage the 'blocked' audit row. The caller commits."""
    event = BanEnforcementEvent(
        business_id=ban.business_id, venue_id=venue_id, area_id=area_id, ban_id=ban.id,
        person_key=person_key, result=ENFORCEMENT_BLOCKED, device_id=device_id,
        user_id=user_id, created_at=utcnow(),
    )
    db.add(event)
    return event


def _find_or_create_person(db: Session, business_id: int, person: dict) -> BannedPerson:
    key = make_person_key(
        first_name=person.get("first_name"), last_name=person.get("last_name"),
        date_of_birth=person.get("date_of_birth"), id_last4=person.get("id_last4"),
        id_number=person.get("id_number"),
    )
    existing = db.query(BannedPerson).filter(
        BannedPerson.business_id == business_id, BannedPerson.person_key == key
    ).first()
    if existing:
        return existing

    id_number = person.get("id_number")
    record = BannedPerson(
        business_id=business_id,
        first_name=person.get("first_name"),
        last_name=person.get("last_name"),
        date_of_birth=person.get("date_of_birth"),
        id_last4=person.get("id_last4") or (id_number[-4:] if id_number else None),
        id_hash=_digest("id:" + "".join(id_number.split()).upper()) if id_number else None,
        person_key=key,
        created_at=utcnow(),
    )
    db.add(record)
    db.flush()
    return record


def create_ban(db: Session, business_id: int, actor_id: str, person: dict,
               reason: str, scope: str = SCOPE_BUSINESS, venue_ids: Optional[list[int]] = None,
               notes: Optional[str] = None, starts_at: Optional[datetime] = None,
               ends_at: Optional[datetime] = None) -> PatronBan:
    member = require_scope(db, actor_id, business_id)
    if member.role not in BAN_MANAGER_ROLES:
        raise Unauthorized(f"Role {member.role} may not create bans")

    scope = scope.upper()
    if scope not in (SCOPE_BUSINESS, SCOPE_VENUE):
        raise InvalidRequest(f"Unknown ban scope '{scope}'")
    if scope == SCOPE_VENUE:
        if not venue_ids:
            raise InvalidRequest("Venue-scoped bans need at least one venue")
        known = {v.id for v in db.query(Venue).filter(
            Venue.business_id == business_id, Venue.id.in_(venue_ids), Venue.status == VENUE_ACTIVE
        )}
        missing = set(venue_ids) - known
        if missing:
            raise InvalidRequest(f"Unknown venues for this business: {sorted(missing)}")
        for vid in venue_ids:
            require_scope(db, actor_id, business_id, vid)
    else:
        venue_ids = None

    now = utcnow()
    starts_at = starts_at or now
    if ends_at is not None and ends_at <= starts_at:
        raise InvalidRequest("Ban must end after it starts")

    person_row = _find_or_create_person(db, business_id, person)
    ban = PatronBan(
        business_id=business_id, person_id=person_row.id, scope=scope, venue_ids=venue_ids,
        status=BAN_ACTIVE, reason=reason, notes=notes, starts_at=starts_at, ends_at=ends_at,
        created_by=actor_id, created_at=now,
    )
    db.add(ban)
    db.commit()
    logger.info(f"[BAN] {actor_id} banned person {person_row.id} ({scope}) reason={reason}")
    return ban


def revoke_ban(db: Session, ban_id: int, business_id: int, actor_id: str,
               reason: Optional[str] = None) -> PatronBan:
    member = require_scope(db, actor_id, business_id)
    if member.role not in BAN_MANAGER_ROLES:
        raise Unauthorized(f"Role {member.role} may not revoke bans")

    ban = db.query(PatronBan).filter(PatronBan.id == ban_id, PatronBan.business_id == business_id).first()
    if not ban:
        raise NotFound(f"Ban {ban_id} not found")
    if ban.status == BAN_REMOVED:
        return ban

    ban.status = BAN_REMOVED
    ban.removed_by = actor_id
    ban.removed_at = utcnow()
    ban.removal_reason = reason
    db.commit()
    logger.info(f"[BAN] {actor_id} revoked ban {ban_id}: {reason}")
    return ban


def expire_stale_bans(db: Session, business_id: int, now: Optional[datetime] = None) -> int:
    """Mark ACTIVE bans whose end date has passed as EXPIRED. Returns how many changed."""
    now = now or utcnow()
    stale = db.query(PatronBan).filter(
        PatronBan.business_id == business_id,
        PatronBan.status == BAN_ACTIVE,
        PatronBan.ends_at.isnot(None),
        PatronBan.ends_at <= now,
    ).all()
    for ban in stale:
        ban.status = BAN_EXPIRED
    if stale:
        db.commit()
        logger.info(f"[BAN] Expired {len(stale)} bans for business {business_id}")
    return len(stale)


def list_bans(db: Session, business_id: int, status: Optional[str] = None, limit: int = 100) -> list[PatronBan]:
    expire_stale_bans(db, business_id)
    q = db.query(PatronBan).filter(PatronBan.business_id == business_id)
    if status:
        q = q.filter(PatronBan.status == status.upper())
    return q.order_by(PatronBan.created_at.desc()).limit(limit).all()
