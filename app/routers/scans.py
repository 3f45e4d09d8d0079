# app/routers/scans.py
"""ID scan decisions — accepted scans count as entries through the ledger."""

import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_actor_id
from app.schemas.scan import ScanIn, ScanOut
from app.services.ban_service import make_person_key
from app.services.ledger_service import AreaScope, retry_on_conflict
from app.services.scan_service import ScanFacts, process_scan

router = APIRouter()


@router.post("/scans", response_model=ScanOut, summary="Record an ID scan at the door")
def post_scan(body: ScanIn, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    person_key = make_person_key(**body.person.model_dump()) if body.person else None
    scope = AreaScope(business_id=body.business_id, venue_id=body.venue_id, area_id=body.area_id)
    facts = ScanFacts(age=body.age, sex=body.sex, zip=body.zip, id_expired=body.id_expired)
    result = retry_on_conflict(
        process_scan, db, scope, facts, person_key, actor_id,
        device_id=body.device_id, idempotency_key=body.idempotency_key or uuid.uuid4().hex,
    )
    return ScanOut(scan_id=result.scan_id, outcome=result.outcome, reason=result.reason,
                   new_occupancy=result.new_occupancy, event_id=result.event_id)
