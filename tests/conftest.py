# tests/conftest.py
"""Shared fixtures: a throwaway SQLite database per test and a seeded tenant."""

import sys
import os
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.gettempdir(), "ledger_default.db"))
os.environ.setdefault("LOG_TO_FILE", "false")

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import make_engine, create_tables
from app.services import venue_service
from app.services.ledger_service import AreaScope

OWNER = "owner-1"


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant(db):
    """One business with two venues; venue A has two areas, venue B has one."""
    business = venue_service.create_business(db, "Test Group", OWNER, "UTC")
    venue_a = venue_service.create_venue(db, business.id, OWNER, "Venue A")
    venue_b = venue_service.create_venue(db, business.id, OWNER, "Venue B")
    main = venue_service.create_area(db, business.id, venue_a.id, OWNER, "Main Floor", 100)
    patio = venue_service.create_area(db, business.id, venue_a.id, OWNER, "Patio", 10)
    bar = venue_service.create_area(db, business.id, venue_b.id, OWNER, "Bar", 50)
    return SimpleNamespace(
        owner=OWNER,
        business_id=business.id,
        venue_a=venue_a.id,
        venue_b=venue_b.id,
        main=main.id,
        patio=patio.id,
        bar=bar.id,
        main_scope=AreaScope(business.id, venue_a.id, main.id),
        patio_scope=AreaScope(business.id, venue_a.id, patio.id),
        bar_scope=AreaScope(business.id, venue_b.id, bar.id),
    )
