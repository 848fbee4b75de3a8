"""
Staging Store Module
Writes raw upstream records into the per-entity staging tables.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import delete, func

from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.database.models import StgTogglTimeEntry
from ternity_sync.utils.helpers import chunk_list, external_id_of, parse_date, utc_now


def _dedupe(rows: List[Dict]) -> List[Dict]:
    """Drop earlier duplicates of an external id, keeping the last occurrence."""
    by_id = {}
    for row in rows:
        by_id[external_id_of(row)] = row
    return list(by_id.values())


class StagingStore:
    """Full-replace and upsert-by-external-id writes against staging tables."""

    def __init__(self, db: DatabaseConnection, batch_size: int = 500):
        self.db = db
        self.batch_size = batch_size

    def _to_rows(self, model, records: List[Dict], run_id: Optional[int]) -> List[Dict]:
        now = utc_now()
        rows = []
        for record in records:
            row = {
                'external_id': external_id_of(record),
                'raw_data': record,
                'synced_at': now,
                'sync_run_id': run_id,
            }
            if model is StgTogglTimeEntry:
                row['entry_date'] = parse_date(record.get('start'))
            rows.append(row)
        return rows

    def replace_all(self, model, records: List[Dict], run_id: Optional[int] = None) -> int:
        """
        Replace the whole staging table with records, in one transaction.

        Returns:
            Number of rows written
        """
        records = _dedupe(records)

        with self.db.session_scope() as session:
            session.execute(delete(model))
            for batch in chunk_list(records, self.batch_size):
                session.bulk_insert_mappings(model, self._to_rows(model, batch, run_id))

        return len(records)

    def upsert_batch(self, model, records: List[Dict], run_id: Optional[int] = None) -> int:
        """
        Insert records, replacing any staged rows with the same external ids.

        Each batch is committed on its own so earlier batches survive a later failure.
        """
        records = _dedupe(records)

        for batch in chunk_list(records, self.batch_size):
            ids = [external_id_of(record) for record in batch]
            with self.db.session_scope() as session:
                session.execute(delete(model).where(model.external_id.in_(ids)))
                session.bulk_insert_mappings(model, self._to_rows(model, batch, run_id))

        return len(records)

    def count(self, model) -> int:
        with self.db.session_scope() as session:
            return session.query(func.count(model.id)).scalar() or 0

    def max_entry_date(self) -> Optional[date]:
        """Latest staged time-entry date, or None when staging is empty."""
        with self.db.session_scope() as session:
            return session.query(func.max(StgTogglTimeEntry.entry_date)).scalar()

    def load_raw(self, model) -> List[Dict]:
        """All staged raw records of a table, in insertion order."""
        with self.db.session_scope() as session:
            return [row.raw_data for row in session.query(model).order_by(model.id).all()]
