# scripts/setup/init_db.py
"""
Initialize database — creates all tables, optionally seeds a demo tenant.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--seed --owner USER_ID]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from app.database import create_tables, engine, SessionLocal
from app.config import settings
from app.services import venue_service


def seed_demo(owner_id: str):
    """One business, one venue, two areas — enough to drive the simulator."""
    db = SessionLocal()
    try:
        business = venue_service.create_business(db, "Demo Nightlife Group", owner_id, settings.DEFAULT_TIMEZONE)
        venue = venue_service.create_venue(db, business.id, owner_id, "Demo Club")
        main = venue_service.create_area(db, business.id, venue.id, owner_id, "Main Floor", 250)
        patio = venue_service.create_area(db, business.id, venue.id, owner_id, "Patio", 60)
        print(f"🌱 Seeded business={business.id} venue={venue.id} areas={[main.id, patio.id]} owner={owner_id}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create tables and optionally seed demo data")
    parser.add_argument("--seed", action="store_true", help="Create a demo business/venue/areas")
    parser.add_argument("--owner", default="demo-owner", help="User id that will own the demo business")
    args = parser.parse_args()

    print("🗄️  Occupancy Ledger DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed:
        seed_demo(args.owner)

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
