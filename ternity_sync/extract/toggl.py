"""
Toggl Extraction Module
Reference entities are fully replaced; time entries are extracted incrementally
and persisted page by page so an interrupted run resumes where it stopped.
"""

from datetime import date, timedelta
from typing import Dict, List

from ternity_sync.clients.toggl import TogglClient
from ternity_sync.database.models import (
    StgTogglClient, StgTogglProject, StgTogglTag, StgTogglTimeEntry, StgTogglUser
)
from ternity_sync.extract.base import BaseExtractor
from ternity_sync.extract.staging import StagingStore
from ternity_sync.run_tracker import RunTracker
from ternity_sync.utils.helpers import build_date_windows, parse_date, utc_today

TOGGL_ENTITIES = ('users', 'clients', 'projects', 'tags', 'time_entries')


class TogglExtractor(BaseExtractor):
    """Extracts Toggl users, clients, projects, tags and time entries into staging."""

    source = 'toggl'
    ENTITIES = TOGGL_ENTITIES

    def __init__(
        self,
        client: TogglClient,
        staging: StagingStore,
        tracker: RunTracker,
        history_start: date = date(2020, 1, 1),
        window_days: int = 90
    ):
        super().__init__(client, staging, tracker)
        self.history_start = history_start
        self.window_days = window_days

    @classmethod
    def from_settings(cls, client: TogglClient, staging: StagingStore, tracker: RunTracker, settings: Dict):
        return cls(
            client,
            staging,
            tracker,
            history_start=parse_date(str(settings.get('history_start', '2020-01-01'))),
            window_days=int(settings.get('time_entries_window_days', 90))
        )

    def extract_users(self) -> int:
        return self.extract_reference('users', StgTogglUser, self.client.get_users)

    def extract_clients(self) -> int:
        return self.extract_reference('clients', StgTogglClient, self.client.get_clients)

    def extract_projects(self) -> int:
        return self.extract_reference('projects', StgTogglProject, self.client.get_projects)

    def extract_tags(self) -> int:
        return self.extract_reference('tags', StgTogglTag, self.client.get_tags)

    def resolve_start(self, start: date = None) -> date:
        """
        Pick the first day to fetch.

        An explicit start wins; otherwise resume one day before the latest staged
        entry (the overlap is re-fetched and deduplicated); otherwise the history start.
        """
        if start:
            self.logger.info(f"  Starting from explicit date {start}")
            return start

        max_date = self.staging.max_entry_date()
        if max_date:
            resume = max_date - timedelta(days=1)
            self.logger.info(
                f"  Resuming from {resume} "
                f"({self.staging.count(StgTogglTimeEntry)} entries in staging, max date: {max_date})"
            )
            return resume

        self.logger.info(f"  No entries in staging, full extract from {self.history_start}")
        return self.history_start

    def extract_time_entries(self, start: date = None, end: date = None) -> int:
        """
        Incrementally extract time entries into staging.

        Returns:
            Number of entries saved during this run
        """
        run_id = self.tracker.start_run(self.source, 'time_entries')
        self.client.reset_retry_count()
        total_saved = 0

        try:
            end = end or utc_today()
            start = self.resolve_start(start)
            self.logger.info(f"Extracting toggl/time_entries ({start} -> {end})")

            windows = build_date_windows(start, end, self.window_days) if start <= end else []
            self.logger.info(f"  {len(windows)} windows to process ({self.window_days}-day chunks)")

            for window_start, window_end in windows:
                self.logger.info(f"  Window: {window_start} -> {window_end}")
                window_saved = 0

                def save_page(entries: List[Dict]) -> None:
                    nonlocal total_saved, window_saved
                    saved = self.staging.upsert_batch(StgTogglTimeEntry, entries, run_id)
                    window_saved += saved
                    total_saved += saved

                self.client.fetch_time_entries_window(window_start, window_end, on_page=save_page)

                if window_saved:
                    self.logger.info(f"    Saved {window_saved} entries (running total: {total_saved})")
                else:
                    self.logger.info("    No entries in this window")

            staged = self.staging.count(StgTogglTimeEntry)
            self.tracker.complete_run(run_id, total_saved, self.client.retry_count)
            self.logger.info(
                f"  ✓ toggl/time_entries: {total_saved} fetched this run, {staged} total in staging"
            )
            return total_saved
        except Exception as e:
            self.tracker.fail_run(run_id, str(e), self.client.retry_count)
            self.logger.error(f"  ✗ toggl/time_entries: {e}")
            self.logger.info(
                f"    {total_saved} entries saved this run before failure, "
                f"{self.staging.count(StgTogglTimeEntry)} total in staging"
            )
            raise

    def extract_entity(self, entity: str, start: date = None, end: date = None) -> int:
        if entity == 'time_entries':
            return self.extract_time_entries(start, end)
        return getattr(self, f"extract_{entity}")()
