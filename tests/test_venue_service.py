# tests/test_venue_service.py
"""Tests for tenant setup and the role gates on area settings."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from app.exceptions import AreaNotFound, InvalidRequest, Unauthorized
from app.models.area import Area
from app.services import venue_service
from app.services.auth_service import require_read_scope


def capacity(db, area_id):
    db.expire_all()
    return db.query(Area).filter(Area.id == area_id).one().capacity


class TestSetAreaCapacity:
    def test_staff_cannot_change_capacity(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "door-a", "STAFF", [tenant.venue_a])

        with pytest.raises(Unauthorized):
            venue_service.set_area_capacity(db, tenant.business_id, tenant.main, "door-a", 500)
        assert capacity(db, tenant.main) == 100

    def test_manager_cannot_change_capacity(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "mgr-a", "MANAGER", [tenant.venue_a])

        with pytest.raises(Unauthorized):
            venue_service.set_area_capacity(db, tenant.business_id, tenant.main, "mgr-a", 500)

    def test_venue_admin_changes_own_venue_only(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "admin-a", "ADMIN", [tenant.venue_a])

        venue_service.set_area_capacity(db, tenant.business_id, tenant.main, "admin-a", 120)
        assert capacity(db, tenant.main) == 120
        with pytest.raises(Unauthorized):
            venue_service.set_area_capacity(db, tenant.business_id, tenant.bar, "admin-a", 120)

    def test_negative_capacity_rejected(self, db, tenant):
        with pytest.raises(InvalidRequest):
            venue_service.set_area_capacity(db, tenant.business_id, tenant.main, tenant.owner, -1)


class TestMembers:
    def test_staff_cannot_add_members(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "door-a", "STAFF", [tenant.venue_a])
        with pytest.raises(Unauthorized):
            venue_service.add_member(db, tenant.business_id, "door-a", "friend", "STAFF", [tenant.venue_a])

    def test_unknown_role_rejected(self, db, tenant):
        with pytest.raises(InvalidRequest):
            venue_service.add_member(db, tenant.business_id, tenant.owner, "x", "BOUNCER")


class TestReadScope:
    @pytest.fixture
    def door_b(self, db, tenant):
        venue_service.add_member(db, tenant.business_id, tenant.owner, "door-b", "STAFF", [tenant.venue_b])
        return "door-b"

    def test_area_resolved_to_its_venue(self, db, tenant, door_b):
        assert require_read_scope(db, door_b, tenant.business_id, area_id=tenant.bar).user_id == door_b
        with pytest.raises(Unauthorized):
            require_read_scope(db, door_b, tenant.business_id, area_id=tenant.main)

    def test_whole_business_needs_business_wide_member(self, db, tenant, door_b):
        with pytest.raises(Unauthorized):
            require_read_scope(db, door_b, tenant.business_id)
        assert require_read_scope(db, tenant.owner, tenant.business_id).user_id == tenant.owner

    def test_area_outside_given_venue_not_found(self, db, tenant):
        with pytest.raises(AreaNotFound):
            require_read_scope(db, tenant.owner, tenant.business_id, tenant.venue_a, tenant.bar)
