"""
Timetastic API Client Module
Users, departments, leave types and absences (holidays) endpoints.
"""

from datetime import date
from typing import Dict, List

import requests

from ternity_sync.clients.base import RateLimitedClient
from ternity_sync.config_manager import ConfigManager, get_timetastic_config
from ternity_sync.utils.helpers import build_date_windows, format_date
from ternity_sync.utils.logger import get_logger
from ternity_sync.utils.retry import RetryOptions

logger = get_logger(__name__)


class TimetasticClient(RateLimitedClient):
    """Timetastic client with Bearer authentication."""

    source = 'timetastic'

    def __init__(self, api_token: str = None, settings: Dict = None, retry_config: Dict = None):
        config = ConfigManager()
        settings = settings if settings is not None else config.get_timetastic_settings()
        retry_config = retry_config if retry_config is not None else config.get_retry_config()

        self.api_token = api_token or get_timetastic_config()['timetastic_api_token']
        self.absences_gap = int(settings.get('absences_gap_ms', 1000)) / 1000.0
        self.absences_window_days = int(settings.get('absences_window_days', 31))

        super().__init__(
            base_url=settings.get('api_base', 'https://app.timetastic.co.uk/api'),
            min_request_gap_ms=int(settings.get('min_request_gap_ms', 200)),
            retry_options=RetryOptions.from_config(retry_config),
            timeout=int(settings.get('timeout', 60)),
            connect_retries=int(retry_config.get('connect_retries', 3))
        )

        logger.info("Timetastic client initialized")

    def _authenticate(self, session: requests.Session) -> None:
        session.headers['Authorization'] = f"Bearer {self.api_token}"

    def get_users(self) -> List[Dict]:
        return self.fetch('/users') or []

    def get_departments(self) -> List[Dict]:
        return self.fetch('/departments') or []

    def get_leave_types(self) -> List[Dict]:
        return self.fetch('/leavetypes') or []

    def get_absences(self, start: date, end: date) -> List[Dict]:
        """
        Fetch absences between start and end (inclusive).

        The holidays endpoint is queried in fixed windows rather than paged by cursor.
        """
        all_absences = []

        for window_start, window_end in build_date_windows(start, end, self.absences_window_days):
            url = f"{self.base_url}/holidays"
            params = {'Start': format_date(window_start), 'End': format_date(window_end)}
            response = self.request('GET', url, params=params, gap=self.absences_gap) or {}

            all_absences.extend(response.get('holidays') or [])
            logger.info(
                f"  Fetched absences for {window_start} -> {window_end} "
                f"(running total: {len(all_absences)})"
            )

        return all_absences
