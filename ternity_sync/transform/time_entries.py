"""
Time Entries Transform Module
Toggl time entries -> time_entries, with label associations rebuilt on every pass.
"""

from typing import Dict, List

from sqlalchemy import delete

from ternity_sync.database.models import EntryLabel, Label, StgTogglTag, StgTogglTimeEntry, TimeEntry
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TogglTagRecord, TogglTimeEntryRecord


class TimeEntriesTransform(BaseTransform):
    """
    An entry needs a mapped user; entries whose user has no mapping are skipped.
    Unknown projects fall back to the "No Project" default.
    """

    name = 'time_entries'
    source = 'toggl'
    mapping_entity = 'time_entries'
    staging_model = StgTogglTimeEntry
    model = TimeEntry

    def prepare(self, session, mappings):
        mappings.load('toggl', 'users')
        mappings.load('toggl', 'projects')

        # tag id -> tag name -> label id
        self._tag_names: Dict[str, str] = {}
        for row in session.query(StgTogglTag).all():
            tag = TogglTagRecord.from_raw(row.raw_data)
            self._tag_names[tag.external_id] = tag.name

        self._labels_by_name: Dict[str, int] = {}
        for label in session.query(Label).order_by(Label.id).all():
            self._labels_by_name.setdefault(label.name.lower(), label.id)

    def normalize(self, raw):
        return TogglTimeEntryRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        if not record.user_external_id:
            self.logger.warning(f"  Skipping time entry {record.external_id}: no user id")
            return None

        user_id = mappings.find_target_id('toggl', 'users', record.user_external_id)
        if user_id is None:
            self.logger.warning(
                f"  Skipping time entry {record.external_id}: "
                f"no user mapping for toggl user {record.user_external_id}"
            )
            return None

        if record.started_at is None:
            self.logger.warning(f"  Skipping time entry {record.external_id}: no start time")
            return None

        project_id = mappings.find_target_id('toggl', 'projects', record.project_external_id)
        if project_id is None:
            project_id = self.context.no_project_id(session)

        return {
            'user_id': user_id,
            'project_id': project_id,
            'description': record.description,
            'started_at': record.started_at,
            'stopped_at': record.stopped_at,
            'duration_seconds': record.duration_seconds,
            'billable': record.billable,
        }

    def label_ids_for(self, record: TogglTimeEntryRecord) -> List[int]:
        label_ids = []
        for tag_id in record.tag_ids:
            name = self._tag_names.get(tag_id)
            label_id = self._labels_by_name.get(name.lower()) if name else None
            if label_id is not None and label_id not in label_ids:
                label_ids.append(label_id)
        return label_ids

    def after_write(self, session, target, record):
        session.execute(delete(EntryLabel).where(EntryLabel.entry_id == target.id))
        for label_id in self.label_ids_for(record):
            session.add(EntryLabel(entry_id=target.id, label_id=label_id))
