"""
Base Extractor Module
Shared run tracking, full-replace extraction and multi-entity orchestration.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from ternity_sync.clients.base import RateLimitedClient
from ternity_sync.extract.staging import StagingStore
from ternity_sync.run_tracker import RunTracker
from ternity_sync.utils.logger import LoggerMixin


@dataclass
class ExtractionSummary:
    """Outcome of a multi-entity extraction: counts of what succeeded, names of what failed."""
    counts: Dict[str, int] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: 'ExtractionSummary', prefix: str = '') -> None:
        for entity, count in other.counts.items():
            self.counts[f"{prefix}{entity}"] = count
        self.failures.extend(f"{prefix}{entity}" for entity in other.failures)


class BaseExtractor(LoggerMixin):
    """Extractor for one source; subclasses declare ENTITIES and map them to methods."""

    source = 'source'
    ENTITIES: Sequence[str] = ()

    def __init__(self, client: RateLimitedClient, staging: StagingStore, tracker: RunTracker):
        self.client = client
        self.staging = staging
        self.tracker = tracker

    def extract_reference(self, entity: str, model, fetcher: Callable[[], List[Dict]]) -> int:
        """
        Fetch a whole collection and replace its staging table.

        Returns:
            Number of records staged
        """
        run_id = self.tracker.start_run(self.source, entity)
        self.client.reset_retry_count()

        try:
            self.logger.info(f"Extracting {self.source}/{entity}...")
            records = fetcher()
            count = self.staging.replace_all(model, records, run_id)

            self.tracker.complete_run(run_id, count, self.client.retry_count)
            self.logger.info(f"  ✓ {self.source}/{entity}: {count} records")
            return count
        except Exception as e:
            self.tracker.fail_run(run_id, str(e), self.client.retry_count)
            self.logger.error(f"  ✗ {self.source}/{entity}: {e}")
            raise

    def extract_entity(self, entity: str, start=None, end=None) -> int:
        raise NotImplementedError

    def extract_all(self, start=None, end=None, entities: Sequence[str] = None) -> ExtractionSummary:
        """
        Extract each requested entity in order; a failing entity does not stop the rest.

        Args:
            start: Optional first day for date-ranged entities
            end: Optional last day for date-ranged entities
            entities: Subset of ENTITIES to run (default: all)
        """
        to_run = list(entities) if entities else list(self.ENTITIES)
        unknown = [e for e in to_run if e not in self.ENTITIES]
        if unknown:
            raise ValueError(f"Unknown {self.source} entities: {', '.join(unknown)}")

        summary = ExtractionSummary()
        for entity in to_run:
            try:
                summary.counts[entity] = self.extract_entity(entity, start, end)
            except Exception:
                # Already logged and recorded by the entity extractor
                summary.failures.append(entity)

        if summary.failures:
            self.logger.warning(
                f"{self.source} extract: {len(summary.failures)}/{len(to_run)} entities failed: "
                f"{', '.join(summary.failures)}"
            )

        return summary
