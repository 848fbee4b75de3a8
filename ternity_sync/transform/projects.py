"""Toggl projects -> projects, attached to their mapped client or the default one."""

from ternity_sync.database.models import Project, StgTogglProject
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TogglProjectRecord


class ProjectsTransform(BaseTransform):
    name = 'projects'
    source = 'toggl'
    mapping_entity = 'projects'
    staging_model = StgTogglProject
    model = Project

    def normalize(self, raw):
        return TogglProjectRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        client_id = mappings.find_target_id('toggl', 'clients', record.client_external_id)
        if client_id is None:
            client_id = self.context.default_client_id(session)

        return {
            'name': record.name,
            'color': record.color,
            'client_id': client_id,
            'is_active': record.active,
        }
