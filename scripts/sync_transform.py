#!/usr/bin/env python
"""
Transform Script
Writes staged records into the canonical tables, in dependency order.

Usage:
    python scripts/sync_transform.py
    python scripts/sync_transform.py --entity clients,projects
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.database.connection import get_db
from ternity_sync.run_tracker import RunTracker
from ternity_sync.transform import TRANSFORM_ORDER, run_transforms


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Transform staging into canonical tables')
    parser.add_argument(
        '--entity',
        type=str,
        help=f"Comma-separated transforms ({', '.join(TRANSFORM_ORDER)}; default: all)"
    )
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    entities = [e.strip() for e in args.entity.split(',') if e.strip()] if args.entity else None

    try:
        db = get_db()
        results, failures = run_transforms(db, RunTracker(db), entities)

        print(f"\n{'='*50}")
        print("Transform Complete" if not failures else "Transform Finished With Failures")
        print(f"{'='*50}")
        for entity, counts in results.items():
            print(f"  {entity}: {counts}")
        for entity in failures:
            print(f"  {entity}: FAILED")

        if failures:
            sys.exit(1)

    except Exception as e:
        logger.error(f"Transform failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
