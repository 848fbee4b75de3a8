#!/usr/bin/env python
"""
Verify Script
Compares Toggl's time-entry counts with staging, year by year. Read-only.

Exit code 0 when every year matches, 1 otherwise.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.config_manager import get_toggl_config
from ternity_sync.database.connection import get_db
from ternity_sync.clients.toggl import TogglClient
from ternity_sync.verify import TogglVerifier


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Verify staged Toggl counts against Toggl')
    parser.add_argument(
        'source',
        nargs='?',
        choices=['toggl'],
        default='toggl',
        help='Source to verify (only toggl is supported)'
    )
    parser.add_argument('--from', dest='from_year', type=int, default=2020, help='First year (default: 2020)')
    parser.add_argument('--to', dest='to_year', type=int, help='Last year (default: current year)')
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    try:
        get_toggl_config()
        verifier = TogglVerifier(TogglClient(), get_db())
        result = verifier.verify(args.from_year, args.to_year)

        print(f"\n{'='*50}")
        print(f"{'Year':<8}{'Toggl':>12}{'Staging':>12}{'Diff':>10}")
        print(f"{'-'*50}")
        for year in result.years:
            print(f"{year.year:<8}{year.toggl:>12,}{year.staging:>12,}{year.diff:>+10,}")
        print(f"{'-'*50}")
        print(f"{'Total':<8}{result.total_toggl:>12,}{result.total_staging:>12,}")
        print("\nAll counts match" if result.all_match else "\nCounts differ")

        sys.exit(0 if result.all_match else 1)

    except Exception as e:
        logger.error(f"Verification failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
