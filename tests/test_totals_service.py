# tests/test_totals_service.py
"""Tests for traffic totals and venue-local day windows."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.exceptions import AreaNotFound, InvalidRequest
from app.services import venue_service
from app.services.event_store import count_events
from app.services.ledger_service import apply_delta
from app.services.reset_service import reset_counts, SCOPE_AREA
from app.services.totals_service import (
    TrafficTotals, get_totals, get_area_breakdown, get_hourly_traffic, get_current_occupancy,
    resolve_window,
)
from app.utils.time import today_window, utcnow


def around_now():
    now = utcnow()
    return now - timedelta(hours=1), now + timedelta(hours=1)


def tap_at(db, tenant, scope, delta, when):
    with patch("app.services.ledger_service.utcnow", return_value=when):
        return apply_delta(db, scope, delta, actor_id=tenant.owner)


class TestGetTotals:
    def test_in_out_net_count(self, db, tenant):
        for delta in (1, 1, 1, -1):
            apply_delta(db, tenant.main_scope, delta, actor_id=tenant.owner)
        start, end = around_now()

        totals = get_totals(db, tenant.business_id, area_id=tenant.main, start=start, end=end)

        assert totals == TrafficTotals(total_in=3, total_out=1, net_delta=2, event_count=4)
        assert totals.as_dict() == {"total_in": 3, "total_out": 1, "net_delta": 2, "event_count": 4}

    def test_reset_zeroes_totals_but_keeps_history(self, db, tenant):
        for delta in (1, 1, 1, -1):
            apply_delta(db, tenant.main_scope, delta, actor_id=tenant.owner)

        reset_counts(db, SCOPE_AREA, tenant.business_id, tenant.owner, area_id=tenant.main)
        start, end = around_now()

        assert get_current_occupancy(db, tenant.business_id, area_id=tenant.main) == 0
        assert get_totals(db, tenant.business_id, area_id=tenant.main, start=start, end=end) == TrafficTotals()
        assert count_events(db, tenant.main) == 5

    def test_only_post_reset_events_count(self, db, tenant):
        apply_delta(db, tenant.main_scope, 5, event_type="BULK", actor_id=tenant.owner)
        reset_counts(db, SCOPE_AREA, tenant.business_id, tenant.owner, area_id=tenant.main)
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner)
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner)
        start, end = around_now()

        totals = get_totals(db, tenant.business_id, area_id=tenant.main, start=start, end=end)
        assert (totals.total_in, totals.event_count) == (2, 2)

    def test_clamped_exit_counts_as_event_without_traffic(self, db, tenant):
        apply_delta(db, tenant.main_scope, -1, actor_id=tenant.owner)
        start, end = around_now()

        totals = get_totals(db, tenant.business_id, area_id=tenant.main, start=start, end=end)
        assert totals == TrafficTotals(total_in=0, total_out=0, net_delta=0, event_count=1)

    def test_window_is_half_open(self, db, tenant):
        day = datetime(2026, 1, 10)
        tap_at(db, tenant, tenant.main_scope, 1, day)                                # start: counted
        tap_at(db, tenant, tenant.main_scope, 1, day + timedelta(hours=12))
        tap_at(db, tenant, tenant.main_scope, 1, day + timedelta(days=1))            # end: excluded
        tap_at(db, tenant, tenant.main_scope, 1, day + timedelta(days=1, hours=3))

        totals = get_totals(db, tenant.business_id, area_id=tenant.main,
                            start=day, end=day + timedelta(days=1))
        assert totals.event_count == 2
        assert totals.total_in == 2

    def test_aware_bounds_are_converted_to_utc(self, db, tenant):
        tap_at(db, tenant, tenant.main_scope, 1, datetime(2026, 1, 10, 6, 30))
        est = timezone(timedelta(hours=-5))

        totals = get_totals(db, tenant.business_id, area_id=tenant.main,
                            start=datetime(2026, 1, 10, 1, 0, tzinfo=est),
                            end=datetime(2026, 1, 10, 2, 0, tzinfo=est))
        assert totals.event_count == 1

    def test_empty_window_is_zero(self, db, tenant):
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner)
        now = utcnow()
        assert get_totals(db, tenant.business_id, start=now, end=now) == TrafficTotals()

    def test_start_after_end_rejected(self, db, tenant):
        now = utcnow()
        with pytest.raises(InvalidRequest):
            get_totals(db, tenant.business_id, start=now, end=now - timedelta(minutes=1))

    def test_scope_narrowing(self, db, tenant):
        apply_delta(db, tenant.main_scope, 3, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.patio_scope, 2, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.bar_scope, 4, event_type="BULK", actor_id=tenant.owner)
        start, end = around_now()

        assert get_totals(db, tenant.business_id, start=start, end=end).total_in == 9
        assert get_totals(db, tenant.business_id, venue_id=tenant.venue_a,
                          start=start, end=end).total_in == 5
        assert get_totals(db, tenant.business_id, venue_id=tenant.venue_b,
                          area_id=tenant.bar, start=start, end=end).total_in == 4

    def test_deleted_area_excluded_from_business_totals(self, db, tenant):
        apply_delta(db, tenant.main_scope, 3, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.patio_scope, 2, event_type="BULK", actor_id=tenant.owner)
        venue_service.soft_delete_area(db, tenant.business_id, tenant.patio, tenant.owner)
        start, end = around_now()

        assert get_totals(db, tenant.business_id, start=start, end=end).total_in == 3

    def test_unknown_scope_rejected(self, db, tenant):
        with pytest.raises(AreaNotFound):
            get_totals(db, tenant.business_id, area_id=9999)
        with pytest.raises(AreaNotFound):
            get_totals(db, tenant.business_id, venue_id=tenant.venue_b, area_id=tenant.main)
        with pytest.raises(AreaNotFound):
            get_totals(db, 9999)

    def test_default_window_is_today(self, db, tenant):
        apply_delta(db, tenant.main_scope, 1, actor_id=tenant.owner)
        totals = get_totals(db, tenant.business_id, area_id=tenant.main)
        assert totals.event_count == 1


class TestResolveWindow:
    def test_venue_timezone_wins_over_business(self, db, tenant):
        venue = venue_service.create_venue(db, tenant.business_id, tenant.owner, "Uptown",
                                           timezone="America/New_York")
        with patch("app.services.totals_service.today_window",
                   wraps=today_window) as window:
            resolve_window(db, tenant.business_id, venue_id=venue.id)
        window.assert_called_once_with("America/New_York")

    def test_business_timezone_used_without_venue_timezone(self, db, tenant):
        with patch("app.services.totals_service.today_window", wraps=today_window) as window:
            resolve_window(db, tenant.business_id, area_id=tenant.main)
        window.assert_called_once_with("UTC")

    def test_explicit_bounds_skip_timezone_lookup(self, db, tenant):
        start, end = datetime(2026, 1, 1), datetime(2026, 1, 2)
        with patch("app.services.totals_service.today_window") as window:
            assert resolve_window(db, tenant.business_id, start=start, end=end) == (start, end)
        window.assert_not_called()


class TestBreakdownAndHourly:
    def test_breakdown_includes_idle_areas(self, db, tenant):
        apply_delta(db, tenant.main_scope, 2, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.main_scope, -1, actor_id=tenant.owner)
        start, end = around_now()

        breakdown = get_area_breakdown(db, tenant.business_id, venue_id=tenant.venue_a,
                                       start=start, end=end)

        assert set(breakdown) == {tenant.main, tenant.patio}
        assert breakdown[tenant.main] == TrafficTotals(2, 1, 1, 2)
        assert breakdown[tenant.patio] == TrafficTotals()

    def test_hourly_buckets(self, db, tenant):
        day = datetime(2026, 2, 1)
        tap_at(db, tenant, tenant.main_scope, 1, day + timedelta(hours=21, minutes=5))
        tap_at(db, tenant, tenant.main_scope, 1, day + timedelta(hours=21, minutes=40))
        tap_at(db, tenant, tenant.main_scope, -1, day + timedelta(hours=23, minutes=10))

        hours = get_hourly_traffic(db, tenant.business_id, area_id=tenant.main,
                                   start=day, end=day + timedelta(days=1))

        assert [h["hour_start"] for h in hours] == [day.replace(hour=21), day.replace(hour=23)]
        assert hours[0]["entries"] == 2 and hours[0]["event_count"] == 2
        assert hours[1]["exits"] == 1 and hours[1]["net_delta"] == -1

    def test_current_occupancy_sums_snapshots(self, db, tenant):
        apply_delta(db, tenant.main_scope, 7, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.patio_scope, 3, event_type="BULK", actor_id=tenant.owner)
        apply_delta(db, tenant.bar_scope, 4, event_type="BULK", actor_id=tenant.owner)

        assert get_current_occupancy(db, tenant.business_id) == 14
        assert get_current_occupancy(db, tenant.business_id, venue_id=tenant.venue_a) == 10
        assert get_current_occupancy(db, tenant.business_id, area_id=tenant.bar) == 4


class TestTodayWindow:
    def test_utc_day(self):
        start, end = today_window("UTC", now=datetime(2026, 3, 8, 12, 0))
        assert start == datetime(2026, 3, 8)
        assert end == datetime(2026, 3, 9)

    def test_local_day_in_utc(self):
        # 02:00 UTC on Jan 11 is still Jan 10 in New York
        start, end = today_window("America/New_York", now=datetime(2026, 1, 11, 2, 0))
        assert start == datetime(2026, 1, 10, 5, 0)
        assert end == datetime(2026, 1, 11, 5, 0)

    def test_spring_forward_day_is_23_hours(self):
        start, end = today_window("America/New_York", now=datetime(2026, 3, 8, 15, 0))
        assert start == datetime(2026, 3, 8, 5, 0)
        assert end == datetime(2026, 3, 9, 4, 0)
        assert end - start == timedelta(hours=23)

    def test_unknown_timezone_falls_back_to_default(self):
        start, end = today_window("Mars/Olympus_Mons", now=datetime(2026, 3, 8, 12, 0))
        assert (start, end) == (datetime(2026, 3, 8), datetime(2026, 3, 9))
