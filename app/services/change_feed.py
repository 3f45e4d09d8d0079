# app/services/change_feed.py
"""
Change feed — notifies in-process subscribers about new occupancy events and
snapshot changes, per business.

It listens to SQLAlchemy session events rather than being called by the ledger:
rows are collected on flush, delivered only after the transaction commits, and
dropped on rollback. Delivery to dashboards (websocket, SSE, push) is up to the
subscriber.
"""

import threading
from typing import Callable, Optional
from sqlalchemy import event
from sqlalchemy.orm import Session
from app.models.area import Area
from app.models.occupancy_event import OccupancyEvent
from app.utils.logger import get_logger

logger = get_logger(__name__)

_PENDING_KEY = "change_feed_pending"

Callback = Callable[[dict], None]


def _event_payload(ev: OccupancyEvent) -> dict:
    return {
        "id": ev.id,
        "business_id": ev.business_id,
        "venue_id": ev.venue_id,
        "area_id": ev.area_id,
        "delta": ev.delta,
        "flow_type": ev.flow_type,
        "event_type": ev.event_type,
        "source": ev.source,
        "occupancy_after": ev.occupancy_after,
        "timestamp": ev.timestamp.isoformat() if ev.timestamp else None,
    }


def _snapshot_payload(area: Area) -> dict:
    return {
        "area_id": area.id,
        "business_id": area.business_id,
        "venue_id": area.venue_id,
        "current_occupancy": area.current_occupancy,
        "capacity": area.capacity,
        "last_reset_at": area.last_reset_at.isoformat() if area.last_reset_at else None,
    }


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[int, list[tuple[Optional[Callback], Optional[Callback]]]] = {}

    def subscribe(self, business_id: int, on_event: Optional[Callback] = None,
                  on_snapshot: Optional[Callback] = None) -> Callable[[], None]:
        """Register callbacks for one business. Returns an unsubscribe function."""
        entry = (on_event, on_snapshot)
        with self._lock:
            self._subscribers.setdefault(business_id, []).append(entry)
        logger.info(f"[FEED] Subscriber added for business {business_id}")

        def unsubscribe():
            with self._lock:
                subs = self._subscribers.get(business_id, [])
                if entry in subs:
                    subs.remove(entry)
                if not subs:
                    self._subscribers.pop(business_id, None)

        return unsubscribe

    def subscriber_count(self, business_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(business_id, []))

    def publish(self, kind: str, payload: dict):
        with self._lock:
            subs = list(self._subscribers.get(payload["business_id"], []))
        for on_event, on_snapshot in subs:
            callback = on_event if kind == "event" else on_snapshot
            if callback is None:
                continue
            try:
                callback(payload)
            except Exception as e:
                # A broken subscriber must not affect the ledger or other subscribers
                logger.error(f"[FEED] Subscriber failed on {kind}: {e}", exc_info=True)


change_feed = ChangeFeed()


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in session.new:
        if isinstance(obj, OccupancyEvent):
            pending.append(("event", _event_payload(obj)))
        elif isinstance(obj, Area):
            pending.append(("snapshot", _snapshot_payload(obj)))
    for obj in session.dirty:
        if isinstance(obj, Area) and session.is_modified(obj):
            pending.append(("snapshot", _snapshot_payload(obj)))


@event.listens_for(Session, "after_commit")
def _deliver_changes(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    for kind, payload in pending:
        change_feed.publish(kind, payload)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_PENDING_KEY, None)
