"""Toggl clients -> clients."""

from ternity_sync.database.models import Client, StgTogglClient
from ternity_sync.transform.base import BaseTransform
from ternity_sync.transform.records import TogglClientRecord


class ClientsTransform(BaseTransform):
    name = 'clients'
    source = 'toggl'
    mapping_entity = 'clients'
    staging_model = StgTogglClient
    model = Client

    def normalize(self, raw):
        return TogglClientRecord.from_raw(raw)

    def build_values(self, session, mappings, record):
        return {'name': record.name}
