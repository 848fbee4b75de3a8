#!/usr/bin/env python
"""
Full Sync Script
Runs one full sync (extract both sources, match users, transform) and exits.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.utils.helpers import parse_date
from ternity_sync.config_manager import get_sync_config
from ternity_sync.pipeline import SyncPipeline


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Run one full sync')
    parser.add_argument('--from', dest='start', type=str, help='First day for time entries/absences (YYYY-MM-DD)')
    parser.add_argument('--to', dest='end', type=str, help='Last day (YYYY-MM-DD, default: today)')
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    try:
        get_sync_config()
        pipeline = SyncPipeline.from_config()
        summary = pipeline.run_full_sync(
            'manual',
            parse_date(args.start) if args.start else None,
            parse_date(args.end) if args.end else None
        )

        print(f"\n{'='*50}")
        print(f"Full Sync {'Complete' if summary.ok else 'Partial'} ({summary.elapsed}s)")
        print(f"{'='*50}")
        for step in summary.failures:
            print(f"  FAILED: {step}")

        if not summary.ok:
            sys.exit(1)

    except Exception as e:
        logger.error(f"Sync failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
