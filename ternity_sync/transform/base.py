"""
Base Transform Module
Framework shared by every staging -> canonical transform.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.run_tracker import RunTracker
from ternity_sync.transform.context import TransformContext
from ternity_sync.transform.mappings import MappingStore
from ternity_sync.utils.logger import LoggerMixin


@dataclass
class TransformCounts:
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def __str__(self) -> str:
        return f"{self.created} created, {self.updated} updated, {self.skipped} skipped"


class BaseTransform(LoggerMixin, ABC):
    """
    Transforms every staged row of one entity into one canonical table.

    For each row: normalize, resolve dependencies (build_values returns None to
    skip), then update the mapped canonical row or insert one and map it.
    """

    name: str = None            # transform name, e.g. 'projects'
    source: str = None          # 'toggl' or 'timetastic'
    mapping_entity: str = None  # entity key in sync_mappings
    staging_model = None
    model = None

    def __init__(self, db: DatabaseConnection, tracker: RunTracker, context: TransformContext = None):
        self.db = db
        self.tracker = tracker
        self.context = context or TransformContext()

    def run(self) -> TransformCounts:
        """Run the transform in one transaction, recorded in the run ledger."""
        run_id = self.tracker.start_run(self.source, f"transform:{self.name}")

        try:
            with self.db.session_scope() as session:
                counts = self.transform(session)

            self.tracker.complete_run(run_id, counts.created + counts.updated)
            self.logger.info(f"Transform {self.name}: {counts}")
            return counts
        except Exception as e:
            # Cached default rows may have been rolled back
            self.context.reset()
            self.tracker.fail_run(run_id, str(e))
            self.logger.error(f"  ✗ transform {self.name}: {e}")
            raise

    def transform(self, session: Session) -> TransformCounts:
        counts = TransformCounts()
        mappings = MappingStore(session)
        mappings.load(self.source, self.mapping_entity)
        self.prepare(session, mappings)

        for row in session.query(self.staging_model).order_by(self.staging_model.id).all():
            record = self.normalize(row.raw_data)
            values = self.build_values(session, mappings, record)
            if values is None:
                counts.skipped += 1
                continue

            existing_id = mappings.find_target_id(self.source, self.mapping_entity, record.external_id)
            target = session.get(self.model, existing_id) if existing_id else None

            if target is not None:
                for key, value in values.items():
                    setattr(target, key, value)
                counts.updated += 1
            else:
                target = self.model(**values)
                session.add(target)
                session.flush()
                mappings.upsert_mapping(
                    self.source, self.mapping_entity, record.external_id,
                    self.model.__tablename__, target.id
                )
                counts.created += 1

            self.after_write(session, target, record)

        return counts

    def prepare(self, session: Session, mappings: MappingStore) -> None:
        """Hook for loading lookups before the row loop."""

    @abstractmethod
    def normalize(self, raw: Dict) -> Any:
        """Raw staged JSON -> typed record."""

    @abstractmethod
    def build_values(self, session: Session, mappings: MappingStore, record: Any) -> Optional[Dict]:
        """Canonical column values for a record, or None to skip it."""

    def after_write(self, session: Session, target: Any, record: Any) -> None:
        """Hook for writes to dependent tables once the canonical row exists."""
