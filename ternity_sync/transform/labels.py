"""Toggl tags -> labels."""

from ternity_sync.database.models import Label, StgTogglTag
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TogglTagRecord


class LabelsTransform(BaseTransform):
    name = 'labels'
    source = 'toggl'
    mapping_entity = 'tags'
    staging_model = StgTogglTag
    model = Label

    def normalize(self, raw):
        return TogglTagRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        return {'name': record.name}
