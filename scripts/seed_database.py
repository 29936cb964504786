#!/usr/bin/env python3
"""
Database Seeder for the Scavenger Hunt

Creates the tables and loads the default checkpoint catalog.

Usage:
    # From project root with venv activated:
    python scripts/seed_database.py

    # With options:
    python scripts/seed_database.py --venue "Talabat HQ" --clear
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scavenger_hunt.config import settings  # noqa: E402
from scavenger_hunt.db.database import SessionLocal, init_db  # noqa: E402
from scavenger_hunt.db.models import Checkpoint, SessionCheckpoint  # noqa: E402
from scavenger_hunt.services.checkpoint_service import checkpoint_service  # noqa: E402


def seed_database(venue: str, clear_existing: bool = False) -> int:
    """Seed the checkpoint catalog. Returns how many checkpoints were created."""
    print("=" * 60)
    print("Seeding Scavenger Hunt database")
    print("=" * 60)

    init_db()
    db = SessionLocal()
    try:
        if clear_existing:
            in_use = db.query(SessionCheckpoint.id).first() is not None
            if in_use:
                print("\nCheckpoints are referenced by game sessions; keeping existing rows")
            else:
                deleted = db.query(Checkpoint).delete()
                db.commit()
                print(f"\nCleared {deleted} checkpoints")

        created = checkpoint_service.seed_default_catalog(db, venue)
        active = len(checkpoint_service.list_active(db, venue))

        print(f"\nCreated {created} checkpoints")
        print(f"Active checkpoints for {venue}: {active}")
        for checkpoint in checkpoint_service.list_active(db, venue):
            print(f"  {checkpoint.id}. {checkpoint.location} ({checkpoint.qr_code})")
        return created

    except Exception as e:
        db.rollback()
        print(f"\nError during seeding: {e}")
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(
        description="Seed the Scavenger Hunt database with the checkpoint catalog"
    )
    parser.add_argument(
        "--venue", "-v",
        default=settings.HUNT_VENUE,
        help=f"Venue name for the checkpoints (default: {settings.HUNT_VENUE})"
    )
    parser.add_argument(
        "--clear", "-c",
        action="store_true",
        help="Clear existing checkpoints before seeding"
    )

    args = parser.parse_args()

    seed_database(venue=args.venue, clear_existing=args.clear)


if __name__ == "__main__":
    main()
