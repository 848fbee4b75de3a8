#!/usr/bin/env python
"""
User Matching Script
Matches Toggl and Timetastic users to canonical users. Dry run unless --apply.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.config_manager import ConfigManager
from ternity_sync.database.connection import get_db
from ternity_sync.transform.users import UserMatcher, format_match_report


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Match source users to canonical users')
    parser.add_argument(
        '--apply',
        action='store_true',
        help='Create and link users (default: report only)'
    )
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    try:
        matcher = UserMatcher.from_config(get_db(), ConfigManager().get_user_matching_config())
        report = matcher.match_users(apply=args.apply)
        print(format_match_report(report))

    except Exception as e:
        logger.error(f"User matching failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
