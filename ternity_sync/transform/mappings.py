"""
Identity Mapping Module
(source, entity, external_id) -> (target_table, target_id), the join between
staged upstream rows and canonical rows.
"""

from typing import Dict, Optional, Set

from sqlalchemy.orm import Session

from ternity_sync.database.connection import upsert
from ternity_sync.database.models import SyncMapping
from ternity_sync.utils.helpers import utc_now


class MappingStore:
    """
    Mapping reads and writes within one session.

    load() caches one (source, entity) pair in memory for bulk transforms;
    writes keep the cache current.
    """

    def __init__(self, session: Session):
        self.session = session
        self._cache: Dict[tuple, Dict[str, int]] = {}

    def load(self, source: str, entity: str) -> Dict[str, int]:
        rows = self.session.query(SyncMapping.external_id, SyncMapping.target_id).filter(
            SyncMapping.source == source,
            SyncMapping.entity == entity
        ).all()
        self._cache[(source, entity)] = {external_id: target_id for external_id, target_id in rows}
        return self._cache[(source, entity)]

    def find_target_id(self, source: str, entity: str, external_id: Optional[str]) -> Optional[int]:
        if external_id is None:
            return None

        cached = self._cache.get((source, entity))
        if cached is not None:
            return cached.get(str(external_id))

        return self.session.query(SyncMapping.target_id).filter(
            SyncMapping.source == source,
            SyncMapping.entity == entity,
            SyncMapping.external_id == str(external_id)
        ).scalar()

    def upsert_mapping(
        self,
        source: str,
        entity: str,
        external_id: str,
        target_table: str,
        target_id: int
    ) -> None:
        """Create the mapping, or repoint it if one already exists for the triple."""
        now = utc_now()
        upsert(
            self.session,
            SyncMapping,
            {
                'source': source,
                'entity': entity,
                'external_id': str(external_id),
                'target_table': target_table,
                'target_id': target_id,
                'created_at': now,
                'updated_at': now,
            },
            index_elements=['source', 'entity', 'external_id'],
            update_columns=['target_table', 'target_id', 'updated_at']
        )

        cached = self._cache.get((source, entity))
        if cached is not None:
            cached[str(external_id)] = target_id

    def mapped_external_ids(self, source: str, entity: str) -> Set[str]:
        rows = self.session.query(SyncMapping.external_id).filter(
            SyncMapping.source == source,
            SyncMapping.entity == entity
        ).all()
        return {row[0] for row in rows}
