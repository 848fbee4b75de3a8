"""
Shared test doubles: an in-memory database and source clients that serve
canned records instead of calling the upstream APIs.
"""

from datetime import date
from typing import Dict, List

from ternity_sync.clients.base import SourceAPIError
from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.utils.helpers import parse_date


def make_db() -> DatabaseConnection:
    """Fresh in-memory SQLite database with the full schema."""
    db = DatabaseConnection('sqlite://')
    db.create_all()
    return db


class FakeClient:
    """Serves canned collections; entities listed in `fail` raise a retryable API error."""

    source = 'fake'

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.retry_count = 0

    def reset_retry_count(self):
        self.retry_count = 0

    def _serve(self, entity: str, records: List[Dict]) -> List[Dict]:
        if entity in self.fail:
            self.retry_count = 5
            raise SourceAPIError(f"{self.source} API 503: {entity} unavailable", 503, retryable=True)
        return [dict(r) for r in records]


class FakeTogglClient(FakeClient):
    source = 'toggl'

    def __init__(
        self,
        users=(),
        clients=(),
        projects=(),
        tags=(),
        entries=(),
        fail=(),
        fail_from_window: int = None,
        year_counts: Dict[int, int] = None
    ):
        super().__init__(fail)
        self.users = list(users)
        self.clients = list(clients)
        self.projects = list(projects)
        self.tags = list(tags)
        self.entries = list(entries)
        # 0-based index of the first window that fails
        self.fail_from_window = fail_from_window
        self.year_counts = year_counts or {}
        self.windows = []
        self.count_calls = []

    def get_users(self):
        return self._serve('users', self.users)

    def get_clients(self):
        return self._serve('clients', self.clients)

    def get_projects(self):
        return self._serve('projects', self.projects)

    def get_tags(self):
        return self._serve('tags', self.tags)

    def fetch_time_entries_window(self, start: date, end: date, on_page=None):
        self.windows.append((start, end))
        if self.fail_from_window is not None and len(self.windows) > self.fail_from_window:
            raise SourceAPIError("toggl API 402: quota exhausted", 402, retry_after=60, retryable=True)

        page = self._serve(
            'time_entries',
            [e for e in self.entries if start <= parse_date(e['start']) <= end]
        )
        if on_page is None:
            return page
        if page:
            on_page(page)
        return []

    def count_time_entries(self, start: date, end: date) -> int:
        self.count_calls.append((start, end))
        return self.year_counts.get(start.year, 0)


class FakeTimetasticClient(FakeClient):
    source = 'timetastic'

    def __init__(self, users=(), departments=(), leave_types=(), absences=(), fail=()):
        super().__init__(fail)
        self.users = list(users)
        self.departments = list(departments)
        self.leave_types = list(leave_types)
        self.absences = list(absences)
        self.absence_ranges = []

    def get_users(self):
        return self._serve('users', self.users)

    def get_departments(self):
        return self._serve('departments', self.departments)

    def get_leave_types(self):
        return self._serve('leave_types', self.leave_types)

    def get_absences(self, start: date, end: date):
        self.absence_ranges.append((start, end))
        return self._serve('absences', self.absences)


def toggl_entry(entry_id, start, user_id=1, project_id=None, tag_ids=(), seconds=3600, **extra):
    """A flattened Toggl search row."""
    entry = {
        'id': entry_id,
        'user_id': user_id,
        'username': extra.pop('username', 'Jane Doe'),
        'project_id': project_id,
        'description': extra.pop('description', f"Entry {entry_id}"),
        'start': start,
        'stop': None,
        'seconds': seconds,
        'billable': False,
        'tag_ids': list(tag_ids),
    }
    entry.update(extra)
    return entry


def tt_absence(absence_id, user_id, start, end, status='Approved', leave_type_id=None, **extra):
    """A Timetastic holiday record."""
    absence = {
        'id': absence_id,
        'userId': user_id,
        'userName': extra.pop('userName', None),
        'leaveTypeId': leave_type_id,
        'startDate': start,
        'endDate': end,
        'deductionDays': extra.pop('deductionDays', 1),
        'status': status,
        'reason': extra.pop('reason', None),
    }
    absence.update(extra)
    return absence
