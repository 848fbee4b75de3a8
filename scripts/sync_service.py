#!/usr/bin/env python
"""
Sync Service Script
Long-running scheduler: full sync at startup, then daily and frequent syncs.
Stops after the in-flight sync on SIGTERM/SIGINT.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ternity_sync.utils.logger import setup_logging, get_logger
from ternity_sync.config_manager import ConfigManager, get_sync_config
from ternity_sync.database.connection import get_db
from ternity_sync.pipeline import SyncPipeline
from ternity_sync.scheduler import ScheduleStateStore, SyncScheduler


def main():
    """Main entry point."""
    setup_logging()
    logger = get_logger(__name__)

    try:
        get_sync_config()
        db = get_db()
        scheduler = SyncScheduler.from_config(
            SyncPipeline.from_config(db),
            ScheduleStateStore(db),
            ConfigManager().get_scheduler_config()
        )
        scheduler.run_forever()

    except Exception as e:
        logger.error(f"Sync service failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
