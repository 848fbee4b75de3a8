"""
Timetastic Extraction Module
Every entity, absences included, is extracted statelessly with a full replace.
"""

from datetime import date
from typing import Dict

from ternity_sync.clients.timetastic import TimetasticClient
from ternity_sync.database.models import StgTtAbsence, StgTtDepartment, StgTtLeaveType, StgTtUser
from ternity_sync.extract.base import BaseExtractor
from ternity_sync.extract.staging import StagingStore
from ternity_sync.run_tracker import RunTracker
from ternity_sync.utils.helpers import parse_date, utc_today

TIMETASTIC_ENTITIES = ('users', 'departments', 'leave_types', 'absences')


class TimetasticExtractor(BaseExtractor):
    """Extracts Timetastic users, departments, leave types and absences into staging."""

    source = 'timetastic'
    ENTITIES = TIMETASTIC_ENTITIES

    def __init__(
        self,
        client: TimetasticClient,
        staging: StagingStore,
        tracker: RunTracker,
        history_start: date = date(2020, 1, 1)
    ):
        super().__init__(client, staging, tracker)
        self.history_start = history_start

    @classmethod
    def from_settings(cls, client: TimetasticClient, staging: StagingStore, tracker: RunTracker, settings: Dict):
        return cls(
            client,
            staging,
            tracker,
            history_start=parse_date(str(settings.get('history_start', '2020-01-01')))
        )

    def extract_users(self) -> int:
        return self.extract_reference('users', StgTtUser, self.client.get_users)

    def extract_departments(self) -> int:
        return self.extract_reference('departments', StgTtDepartment, self.client.get_departments)

    def extract_leave_types(self) -> int:
        return self.extract_reference('leave_types', StgTtLeaveType, self.client.get_leave_types)

    def extract_absences(self, start: date = None, end: date = None) -> int:
        """Extract absences for [start, end], replacing the staged absences."""
        start = start or self.history_start
        end = end or utc_today()
        return self.extract_reference(
            'absences', StgTtAbsence, lambda: self.client.get_absences(start, end)
        )

    def extract_entity(self, entity: str, start: date = None, end: date = None) -> int:
        if entity == 'absences':
            return self.extract_absences(start, end)
        return getattr(self, f"extract_{entity}")()
