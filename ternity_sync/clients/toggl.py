"""
Toggl Track API Client Module
Workspace REST endpoints (v9) and the Reports API (v3) used for time-entry
search and the summary counts the verifier relies on.
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests

from ternity_sync.clients.base import RateLimitedClient
from ternity_sync.config_manager import ConfigManager, get_toggl_config
from ternity_sync.utils.helpers import format_date
from ternity_sync.utils.logger import get_logger
from ternity_sync.utils.retry import RetryOptions

logger = get_logger(__name__)

PageCallback = Callable[[List[Dict]], None]


def flatten_search_results(rows: List[Dict]) -> List[Dict]:
    """
    Flatten grouped search rows into one record per actual time entry.

    The search endpoint returns one row per description/user/tag combination
    with the individual entries nested under `time_entries`.
    """
    flat = []
    for row in rows or []:
        parent = {k: v for k, v in row.items() if k != 'time_entries'}
        for entry in row.get('time_entries') or []:
            record = dict(parent)
            record.update({
                'id': entry.get('id'),
                'start': entry.get('start'),
                'stop': entry.get('stop'),
                'seconds': entry.get('seconds'),
                'entry_at': entry.get('at'),
            })
            flat.append(record)
    return flat


class TogglClient(RateLimitedClient):
    """
    Toggl Track client.

    REST paths are relative to the v9 API base; reports paths are relative to
    the workspace under the Reports API base.
    """

    source = 'toggl'
    # Toggl answers 402 when the hourly API quota is exhausted
    retryable_statuses = frozenset({402, 429, 500, 502, 503})

    def __init__(
        self,
        api_token: str = None,
        workspace_id: str = None,
        settings: Dict = None,
        retry_config: Dict = None
    ):
        config = ConfigManager()
        settings = settings if settings is not None else config.get_toggl_settings()
        retry_config = retry_config if retry_config is not None else config.get_retry_config()

        if api_token is None or workspace_id is None:
            credentials = get_toggl_config()
            api_token = api_token or credentials['toggl_api_token']
            workspace_id = workspace_id or credentials['toggl_workspace_id']

        self.api_token = api_token
        self.workspace_id = workspace_id
        self.reports_base = settings.get('reports_base', 'https://api.track.toggl.com/reports/api/v3').rstrip('/')
        self.page_size = int(settings.get('page_size', 200))

        super().__init__(
            base_url=settings.get('api_base', 'https://api.track.toggl.com/api/v9'),
            min_request_gap_ms=int(settings.get('min_request_gap_ms', 250)),
            retry_options=RetryOptions.from_config(retry_config),
            timeout=int(settings.get('timeout', 60)),
            connect_retries=int(retry_config.get('connect_retries', 3)),
            max_rate_limit_wait=float(settings.get('max_rate_limit_wait_secs', 3600))
        )

        logger.info(f"Toggl client initialized for workspace {self.workspace_id}")

    def _authenticate(self, session: requests.Session) -> None:
        session.auth = (self.api_token, 'api_token')

    def reports_fetch(self, path: str, body: Dict) -> Any:
        """POST a JSON filter body to a workspace Reports API endpoint."""
        url = f"{self.reports_base}/workspace/{self.workspace_id}{path}"
        return self.request('POST', url, json_data=body)

    # ========================================
    # Workspace entities
    # ========================================

    def get_users(self) -> List[Dict]:
        return self.fetch(f"/workspaces/{self.workspace_id}/users") or []

    def get_clients(self) -> List[Dict]:
        return self.fetch(f"/workspaces/{self.workspace_id}/clients") or []

    def get_projects(self) -> List[Dict]:
        return self.fetch(f"/workspaces/{self.workspace_id}/projects") or []

    def get_tags(self) -> List[Dict]:
        return self.fetch(f"/workspaces/{self.workspace_id}/tags") or []

    # ========================================
    # Time entries
    # ========================================

    def fetch_time_entries_window(
        self,
        start: date,
        end: date,
        on_page: Optional[PageCallback] = None
    ) -> List[Dict]:
        """
        Fetch flattened time entries for a single date window, following pagination.

        Args:
            start: First day of the window
            end: Last day of the window (inclusive; at most 366 days after start)
            on_page: Called with each page's flattened entries as soon as it arrives

        Returns:
            All flattened entries of the window when on_page is None; otherwise
            pages are handed off as they arrive and nothing is kept
        """
        entries = []
        fetched = 0
        first_row_number = None

        while True:
            body = {
                'start_date': format_date(start),
                'end_date': format_date(end),
                'page_size': self.page_size,
            }
            if first_row_number is not None:
                body['first_row_number'] = first_row_number

            rows = self.reports_fetch('/search/time_entries', body)
            if not rows:
                break

            flattened = flatten_search_results(rows)
            fetched += len(flattened)
            logger.info(f"  Fetched {len(rows)} rows -> {len(flattened)} entries (total: {fetched})")

            if on_page is None:
                entries.extend(flattened)
            elif flattened:
                on_page(flattened)

            if len(rows) < self.page_size:
                break
            first_row_number = (first_row_number or 1) + self.page_size

        return entries

    def count_time_entries(self, start: date, end: date) -> int:
        """
        Count time entries in [start, end] via the summary endpoint.

        The summary is grouped (projects -> time entries), so the count is the
        total length of the nested id lists.
        """
        body = {
            'start_date': format_date(start),
            'end_date': format_date(end),
            'grouping': 'projects',
            'sub_grouping': 'time_entries',
            'include_time_entry_ids': True,
        }
        summary = self.reports_fetch('/summary/time_entries', body) or {}
        groups = summary.get('groups') or []

        count = 0
        for group in groups:
            for sub_group in group.get('sub_groups') or []:
                ids = sub_group.get('ids') or sub_group.get('time_entry_ids') or []
                count += len(ids)

        if count == 0 and groups:
            logger.warning(
                f"Summary for {start} -> {end} has {len(groups)} groups but no entry ids; "
                f"response format may have changed"
            )

        return count
