#!/usr/bin/env python3
"""Reset every lift to available on the ground floor (testing / after a hardware fault).
With --clear-bookings also delete all bookings and free every spot; lots, spots and lifts stay.

Run from backend: python scripts/reset_lifts.py [--clear-bookings]
"""
import argparse
import sys
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import text

from parkhub.core.constants import SPOT_AVAILABLE
from parkhub.db.session import SessionLocal
from parkhub.db.tables import RUNTIME_TABLE_NAMES
from parkhub.services.lift_service import reset_lifts


def clear_bookings(db) -> None:
    for name in RUNTIME_TABLE_NAMES:
        n = db.execute(text(f"DELETE FROM {name}")).rowcount
        print(f"  {name}: deleted {n} rows")
    n = db.execute(
        text("UPDATE parking_spots SET status = :a WHERE status <> :a"), {"a": SPOT_AVAILABLE}
    ).rowcount
    print(f"  parking_spots: freed {n} spots")
    db.commit()


def main():
    parser = argparse.ArgumentParser(description="Reset lifts (and optionally bookings)")
    parser.add_argument("--clear-bookings", action="store_true", help="Delete all bookings and free all spots")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.clear_bookings:
            print("Clearing runtime state...")
            clear_bookings(db)
        lifts = reset_lifts(db)
        print(f"Reset {len(lifts)} lifts:")
        for lift in lifts:
            print(f"  {lift.id}: {lift.status}")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
