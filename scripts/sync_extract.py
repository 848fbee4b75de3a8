#!/usr/bin/env python
"""
Extract Script
Pulls raw records from Toggl and/or Timetastic into the staging tables.

Usage:
    python scripts/sync_extract.py toggl
    python scripts/sync_extract.py timetastic --entity users,absences
    python scripts/sync_extract.py all --from 2024-01-01 --to 2024-12-31
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.utils.helpers import parse_date
from ternity_sync.config_manager import ConfigManager, get_toggl_config, get_timetastic_config
from ternity_sync.database.connection import get_db
from ternity_sync.clients.toggl import TogglClient
from ternity_sync.clients.timetastic import TimetasticClient
from ternity_sync.extract.base import ExtractionSummary
from ternity_sync.extract.staging import StagingStore
from ternity_sync.extract.toggl import TogglExtractor, TOGGL_ENTITIES
from ternity_sync.extract.timetastic import TimetasticExtractor, TIMETASTIC_ENTITIES
from ternity_sync.run_tracker import RunTracker


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Extract source data into staging')
    parser.add_argument(
        'source',
        nargs='?',
        choices=['toggl', 'timetastic', 'all'],
        default='all',
        help='Source to extract (default: all)'
    )
    parser.add_argument(
        '--from',
        dest='start',
        type=str,
        help='First day for time entries/absences (YYYY-MM-DD)'
    )
    parser.add_argument(
        '--to',
        dest='end',
        type=str,
        help='Last day for time entries/absences (YYYY-MM-DD, default: today)'
    )
    parser.add_argument(
        '--entity',
        type=str,
        help=(
            f"Comma-separated entities (toggl: {', '.join(TOGGL_ENTITIES)}; "
            f"timetastic: {', '.join(TIMETASTIC_ENTITIES)})"
        )
    )
    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    setup_logging()
    logger = get_logger(__name__)

    start = parse_date(args.start) if args.start else None
    end = parse_date(args.end) if args.end else None
    entities = [e.strip() for e in args.entity.split(',') if e.strip()] if args.entity else None

    try:
        # Fail fast with every missing credential listed
        if args.source in ('toggl', 'all'):
            get_toggl_config()
        if args.source in ('timetastic', 'all'):
            get_timetastic_config()

        config = ConfigManager()
        db = get_db()
        tracker = RunTracker(db)
        staging = StagingStore(db, batch_size=int(config.get_etl_config().get('batch_size', 500)))

        summary = ExtractionSummary()

        if args.source in ('toggl', 'all'):
            extractor = TogglExtractor.from_settings(
                TogglClient(), staging, tracker, config.get_toggl_settings()
            )
            toggl_entities = [e for e in entities if e in TOGGL_ENTITIES] if entities else None
            if entities is None or toggl_entities:
                summary.merge(extractor.extract_all(start, end, toggl_entities), prefix='toggl/')

        if args.source in ('timetastic', 'all'):
            extractor = TimetasticExtractor.from_settings(
                TimetasticClient(), staging, tracker, config.get_timetastic_settings()
            )
            tt_entities = [e for e in entities if e in TIMETASTIC_ENTITIES] if entities else None
            if entities is None or tt_entities:
                summary.merge(extractor.extract_all(start, end, tt_entities), prefix='timetastic/')

        if entities and not summary.counts and not summary.failures:
            raise ValueError(f"No {args.source} entity matches: {', '.join(entities)}")

        print(f"\n{'='*50}")
        print("Extraction Complete" if summary.ok else "Extraction Finished With Failures")
        print(f"{'='*50}")
        for entity, count in summary.counts.items():
            print(f"  {entity}: {count}")
        for entity in summary.failures:
            print(f"  {entity}: FAILED")

        if not summary.ok:
            sys.exit(1)

    except Exception as e:
        logger.error(f"Extraction failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
