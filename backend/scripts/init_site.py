#!/usr/bin/env python3
"""Create the configured blocks, their spots and lifts (BLOCKS_PER_SITE, SLOTS_PER_BLOCK, LIFTS_PER_BLOCK).
Idempotent: existing blocks and lifts are kept.
Run from backend: python scripts/init_site.py
"""
import sys
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from parkhub.config import get_site_layout
from parkhub.db.session import SessionLocal
from parkhub.services.lot_service import initialize_site, parking_stats


def main():
    layout = get_site_layout()
    db = SessionLocal()
    try:
        result = initialize_site(db, layout)
        stats = parking_stats(db)
        print(f"Blocks created: {', '.join(result['created_blocks']) or '(none, already initialized)'}")
        print(f"Lifts: {result['lift_count']}")
        print(f"Slots: {stats['total']} total, {stats['available']} available, {stats['occupied']} occupied")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
