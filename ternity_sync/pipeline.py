"""
Sync Pipeline Module
Orchestrates extraction, user matching and transforms as a list of named steps.
A failing step is logged and recorded; the remaining steps still run.
"""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ternity_sync.clients.timetastic import TimetasticClient
from ternity_sync.clients.toggl import TogglClient
from ternity_sync.config_manager import ConfigManager
from ternity_sync.database.connection import DatabaseConnection, get_db
from ternity_sync.extract.base import ExtractionSummary
from ternity_sync.extract.staging import StagingStore
from ternity_sync.extract.timetastic import TimetasticExtractor
from ternity_sync.extract.toggl import TogglExtractor
from ternity_sync.run_tracker import RunTracker
from ternity_sync.transform import TRANSFORM_ORDER, TRANSFORMS, TransformContext, UserMatcher, validate_order
from ternity_sync.transform.users import MatchReport
from ternity_sync.utils.logger import LoggerMixin, sync_step

Step = Tuple[str, Callable[[], Any]]


@dataclass
class SyncSummary:
    name: str
    elapsed: float = 0.0
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class SyncPipeline(LoggerMixin):
    """
    Full and frequent sync runs over shared clients.

    Args:
        on_step: Called with the step name after every step, successful or not
    """

    def __init__(
        self,
        db: DatabaseConnection,
        toggl_client: TogglClient,
        timetastic_client: TimetasticClient,
        config: ConfigManager = None,
        on_step: Optional[Callable[[str], None]] = None
    ):
        config = config or ConfigManager()
        self.db = db
        self.on_step = on_step
        self.tracker = RunTracker(db)

        staging = StagingStore(db, batch_size=int(config.get_etl_config().get('batch_size', 500)))
        self.toggl = TogglExtractor.from_settings(
            toggl_client, staging, self.tracker, config.get_toggl_settings()
        )
        self.timetastic = TimetasticExtractor.from_settings(
            timetastic_client, staging, self.tracker, config.get_timetastic_settings()
        )
        self.matcher = UserMatcher.from_config(db, config.get_user_matching_config())

        validate_order()

    @classmethod
    def from_config(cls, db: DatabaseConnection = None, on_step: Callable[[str], None] = None) -> 'SyncPipeline':
        """Build a pipeline with clients configured from the environment."""
        return cls(db or get_db(), TogglClient(), TimetasticClient(), on_step=on_step)

    # ========================================
    # Steps
    # ========================================

    def match_users(self) -> MatchReport:
        """Apply-mode user matching, recorded in the run ledger."""
        run_id = self.tracker.start_run('pipeline', 'match_users')
        try:
            report = self.matcher.match_users(apply=True)
            self.tracker.complete_run(run_id, len(report.matched) + len(report.created))
            return report
        except Exception as e:
            self.tracker.fail_run(run_id, str(e))
            raise

    def transform_steps(self, entities: Sequence[str] = None) -> List[Step]:
        """One step per transform, in dependency order, sharing one context."""
        context = TransformContext()
        return [
            (f"transform {entity}", lambda entity=entity: TRANSFORMS[entity](self.db, self.tracker, context).run())
            for entity in TRANSFORM_ORDER
            if not entities or entity in entities
        ]

    def run_steps(self, name: str, steps: Sequence[Step]) -> SyncSummary:
        """Run every step in order, collecting failures instead of stopping."""
        self.logger.info(f"── {name}: Start ──")
        started = time.monotonic()
        summary = SyncSummary(name)

        for step_name, fn in steps:
            try:
                with sync_step(step_name):
                    result = fn()
                # Multi-entity extraction reports its own partial failures
                if isinstance(result, ExtractionSummary):
                    summary.failures.extend(f"{step_name}/{entity}" for entity in result.failures)
            except Exception as e:
                self.logger.error(f"  ✗ {step_name}: {e}")
                summary.failures.append(step_name)
            finally:
                if self.on_step:
                    self.on_step(step_name)

        summary.elapsed = round(time.monotonic() - started, 1)
        if summary.ok:
            self.logger.info(f"── {name}: Complete ({summary.elapsed}s) ──")
        else:
            self.logger.warning(
                f"── {name}: Partial ({summary.elapsed}s), {len(summary.failures)} failed: "
                f"{', '.join(summary.failures)} ──"
            )
        return summary

    # ========================================
    # Syncs
    # ========================================

    def run_full_sync(self, trigger: str = 'manual', start: date = None, end: date = None) -> SyncSummary:
        """All entities of both sources, then user matching and every transform."""
        self.tracker.trigger = trigger
        steps = [
            ('extract toggl', lambda: self.toggl.extract_all(start, end)),
            ('extract timetastic', lambda: self.timetastic.extract_all(start, end)),
            ('match users', self.match_users),
        ] + self.transform_steps()
        return self.run_steps('Full Sync', steps)

    def run_frequent_sync(self, trigger: str = 'frequent') -> SyncSummary:
        """Incremental time entries and absences, then user matching and every transform."""
        self.tracker.trigger = trigger
        steps = [
            ('extract toggl/time_entries', self.toggl.extract_time_entries),
            ('extract timetastic/absences', self.timetastic.extract_absences),
            ('match users', self.match_users),
        ] + self.transform_steps()
        return self.run_steps('Frequent Sync', steps)
