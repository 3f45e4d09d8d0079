# tests/test_ledger_service.py
"""Tests for the occupancy ledger (apply_delta)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.exceptions import AreaNotFound, BannedPatron, InvalidDelta, StorageConflict, Unauthorized
from app.models.alert import Alert
from app.models.area import Area
from app.models.occupancy_event import OccupancyEvent, EVENT_SCAN, EVENT_RESET, FLOW_IN, FLOW_OUT
from app.models.patron_ban import BanEnforcementEvent
from app.services import venue_service
from app.services.ban_service import create_ban, make_person_key
from app.services.event_store import count_events
from app.services.ledger_service import AreaScope, DeltaResult, apply_delta, retry_on_conflict
from app.services.snapshot_service import replay_occupancy
from app.services.alert_service import check_capacity as real_check_capacity
from app.utils.locks import _lock_for


def occupancy(db, area_id):
    db.expire_all()
    return db.query(Area).filter(Area.id == area_id).one().current_occupancy


class TestApplyDelta:
    def test_increment_updates_snapshot_and_appends_event(self, db, tenant):
        result = apply_delta(db, tenant.main_scope, 1, source="clicker", actor_id=tenant.owner,
                             device_id="dev-1", idempotency_key="k1")

        assert result.new_occupancy == 1
        assert result.applied_delta == 1
        assert result.duplicate is False
        event = db.query(OccupancyEvent).filter(OccupancyEvent.id == result.event_id).one()
        assert event.delta == 1
        assert event.flow_type == FLOW_IN
        assert event.device_id == "dev-1"
        assert event.user_id == tenant.owner
        assert event.occupancy_after == 1
        assert occupancy(db, tenant.main) == 1

    def test_bulk_correction(self, db, tenant):
        apply_delta(db, tenant.main_scope, 12, event_type="BULK", actor_id=tenant.owner)
        result = apply_delta(db, tenant.main_scope, -4, event_type="BULK", actor_id=tenant.owner)
        assert result.new_occupancy == 8

    def test_same_idempotency_key_applies_once(self, db, tenant):
        first = apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="tap-42")
        second = apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="tap-42")

        assert second.duplicate is True
        assert second.event_id == first.event_id
        assert second.new_occupancy == first.new_occupancy == 1
        assert count_events(db, tenant.main) == 1
        assert occupancy(db, tenant.main) == 1

    def test_duplicate_returns_original_occupancy_after_later_taps(self, db, tenant):
        first = apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="a")
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="b")
        retry = apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="a")
        assert retry.new_occupancy == first.new_occupancy == 1
        assert occupancy(db, tenant.main) == 2

    def test_same_key_on_different_areas_is_independent(self, db, tenant):
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner, idempotency_key="shared")
        result = apply_delta(db, tenant.patio_scope, 1, actor_id=tenant.owner, idempotency_key="shared")
        assert result.duplicate is False
        assert occupancy(db, tenant.patio) == 1

    def test_negative_delta_at_zero_is_clamped(self, db, tenant):
        result = apply_delta(db, tenant.main_scope, -5, actor_id=tenant.owner)

        assert result.new_occupancy == 0
        assert result.applied_delta == 0
        event = db.query(OccupancyEvent).filter(OccupancyEvent.id == result.event_id).one()
        assert event.delta == 0
        assert event.requested_delta == -5
        assert event.flow_type == FLOW_OUT

    def test_partial_clamp_records_applied_delta(self, db, tenant):
        apply_delta(db, tenant.main_scope, 2, actor_id=tenant.owner)
        result = apply_delta(db, tenant.main_scope, -5, actor_id=tenant.owner)

        assert result.new_occupancy == 0
        assert result.applied_delta == -2
        area = db.query(Area).filter(Area.id == tenant.main).one()
        assert replay_occupancy(db, area) == 0

    @pytest.mark.parametrize("bad", [0, True, 1.5, "1"])
    def test_invalid_delta_rejected(self, db, tenant, bad):
        with pytest.raises(InvalidDelta):
            apply_delta(db, tenant.main_scope, bad, actor_id=tenant.owner)
        assert count_events(db) == 0

    def test_reset_event_type_cannot_be_applied(self, db, tenant):
        with pytest.raises(InvalidDelta):
            apply_delta(db, tenant.main_scope, -1, event_type=EVENT_RESET, actor_id=tenant.owner)

    def test_unknown_actor_rejected(self, db, tenant):
        with pytest.raises(Unauthorized):
            apply_delta(db, tenant.main_scope, 1, actor_id="stranger")
        assert count_events(db) == 0

    def test_missing_actor_rejected(self, db, tenant):
        with pytest.raises(Unauthorized):
            apply_delta(db, tenant.main_scope, 1, actor_id=None)

    def test_venue_scoped_member_limited_to_their_venue(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "door-b", "STAFF", [tenant.venue_b])

        assert apply_delta(db, tenant.bar_scope, 1, actor_id="door-b").new_occupancy == 1
        with pytest.raises(Unauthorized):
            apply_delta(db, tenant.main_scope, 1, actor_id="door-b")

    def test_area_outside_given_venue_not_found(self, db, tenant):
        wrong = AreaScope(tenant.business_id, tenant.venue_a, tenant.bar)
        with pytest.raises(AreaNotFound):
            apply_delta(db, wrong, 1, actor_id=tenant.owner)

    def test_soft_deleted_area_not_found(self, db, tenant):
        venue_service.soft_delete_area(db, tenant.business_id, tenant.patio, tenant.owner)
        with pytest.raises(AreaNotFound):
            apply_delta(db, tenant.patio_scope, 1, actor_id=tenant.owner)

    def test_snapshot_matches_event_replay(self, db, tenant):
        for delta in (3, -1, 5, -10, 2, 1, -1):
            apply_delta(db, tenant.main_scope, delta, actor_id=tenant.owner)

        area = db.query(Area).filter(Area.id == tenant.main).one()
        assert area.current_occupancy == 3
        assert replay_occupancy(db, area) == area.current_occupancy


class TestBanCheck:
    def _ban(self, db, tenant):
        person = {"first_name": "Sam", "last_name": "Rowdy", "date_of_birth": date(1990, 5, 1)}
        create_ban(db, tenant.business_id, tenant.owner, person, "AGGRESSIVE")
        return make_person_key(first_name="Sam", last_name="Rowdy", date_of_birth=date(1990, 5, 1))

    def test_banned_scan_rejected_without_touching_snapshot(self, db, tenant):
        key = self._ban(db, tenant)

        with pytest.raises(BannedPatron):
            apply_delta(db, tenant.main_scope, 1, source="scan", event_type=EVENT_SCAN,
                        person_key=key, actor_id=tenant.owner)

        assert occupancy(db, tenant.main) == 0
        assert count_events(db, tenant.main) == 0
        blocked = db.query(BanEnforcementEvent).all()
        assert len(blocked) == 1
        assert blocked[0].area_id == tenant.main

    def test_taps_are_not_ban_checked(self, db, tenant):
        key = self._ban(db, tenant)
        result = apply_delta(db, tenant.main_scope, 1, person_key=key, actor_id=tenant.owner)
        assert result.new_occupancy == 1

    def test_unbanned_scan_accepted(self, db, tenant):
        self._ban(db, tenant)
        other = make_person_key(last_name="Calm", date_of_birth=date(1995, 1, 1))
        result = apply_delta(db, tenant.main_scope, 1, event_type=EVENT_SCAN, person_key=other,
                             actor_id=tenant.owner)
        assert result.new_occupancy == 1


class TestCapacityAlerts:
    def test_filling_area_alerts_once_per_level(self, db, tenant):
        for _ in range(12):
            apply_delta(db, tenant.patio_scope, 1, actor_id=tenant.owner)

        alerts = db.query(Alert).filter(Alert.area_id == tenant.patio).all()
        types = sorted(a.alert_type for a in alerts)
        assert types == ["capacity_reached", "capacity_warning"]

    def test_capacity_checked_while_area_locked(self, db, tenant):
        held = []

        def record_lock(session, area):
            held.append(_lock_for(area.id).locked())
            return real_check_capacity(session, area)

        with patch("app.services.ledger_service.check_capacity", side_effect=record_lock):
            apply_delta(db, tenant.patio_scope, 10, actor_id=tenant.owner, event_type="BULK")

        assert held == [True]
        assert db.query(Alert).filter(Alert.area_id == tenant.patio,
                                      Alert.alert_type == "capacity_reached").count() == 1

    def test_parallel_fill_alerts_once_per_level(self, session_factory, db, tenant):
        def tap(i):
            session = session_factory()
            try:
                return apply_delta(session, tenant.patio_scope, 1, actor_id=tenant.owner,
                                   idempotency_key=f"fill-{i}")
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(tap, range(20)))

        types = sorted(a.alert_type for a in db.query(Alert).filter(Alert.area_id == tenant.patio))
        assert types == ["capacity_reached", "capacity_warning"]


class TestConcurrency:
    def test_parallel_increments_are_not_lost(self, session_factory, tenant):
        def tap(i):
            session = session_factory()
            try:
                return apply_delta(session, tenant.main_scope, 1, actor_id=tenant.owner,
                                   idempotency_key=f"tap-{i}")
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(tap, range(100)))

        assert sorted(r.new_occupancy for r in results) == list(range(1, 101))
        check = session_factory()
        try:
            assert check.query(Area).filter(Area.id == tenant.main).one().current_occupancy == 100
            assert count_events(check, tenant.main) == 100
        finally:
            check.close()

    def test_parallel_exits_clamp_once(self, session_factory, db, tenant):
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner)

        def exit_tap(i):
            session = session_factory()
            try:
                return apply_delta(session, tenant.main_scope, -1, actor_id=tenant.owner,
                                   idempotency_key=f"out-{i}")
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(exit_tap, range(2)))

        assert sorted(r.applied_delta for r in results) == [-1, 0]
        assert occupancy(db, tenant.main) == 0


class TestStorageFailures:
    def test_lost_idempotency_race_returns_winner(self):
        db = MagicMock()
        winner = MagicMock(id=7, delta=1, occupancy_after=4)
        scope = AreaScope(1, 1, 1)

        with patch("app.services.ledger_service.require_scope"), \
             patch("app.services.ledger_service._apply_locked",
                   side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))), \
             patch("app.services.ledger_service.find_by_idempotency_key", return_value=winner):
            result = apply_delta(db, scope, 1, actor_id="u", idempotency_key="k")

        db.rollback.assert_called_once()
        assert result == DeltaResult(new_occupancy=4, event_id=7, applied_delta=1, duplicate=True)

    def test_serialization_failure_becomes_storage_conflict(self):
        db = MagicMock()
        with patch("app.services.ledger_service.require_scope"), \
             patch("app.services.ledger_service._apply_locked",
                   side_effect=OperationalError("UPDATE", {}, Exception("could not serialize"))):
            with pytest.raises(StorageConflict):
                apply_delta(db, AreaScope(1, 1, 1), 1, actor_id="u", idempotency_key="k")
        db.rollback.assert_called_once()

    def test_retry_on_conflict_retries_then_succeeds(self):
        fn = MagicMock(side_effect=[StorageConflict(), StorageConflict(), "ok"])
        assert retry_on_conflict(fn, "a", attempts=3, base_delay=0, key="v") == "ok"
        assert fn.call_count == 3
        fn.assert_called_with("a", key="v")

    def test_retry_on_conflict_gives_up(self):
        fn = MagicMock(side_effect=StorageConflict())
        with pytest.raises(StorageConflict):
            retry_on_conflict(fn, attempts=2, base_delay=0)
        assert fn.call_count == 2
