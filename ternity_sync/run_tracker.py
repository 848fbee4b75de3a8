"""
Run Tracker Module
Passive ledger of extraction and transform attempts (the sync_runs table).
"""

from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.database.models import SyncRun
from ternity_sync.utils.helpers import utc_now

MAX_ERROR_LENGTH = 2000


class RunTracker:
    """
    Records one sync_runs row per attempt.

    Callers call start_run once and exactly one of complete_run / fail_run,
    from their own try/except. Each call commits in its own transaction so the
    ledger survives a rollback of the tracked work.
    """

    def __init__(self, db: DatabaseConnection, trigger: str = 'manual'):
        self.db = db
        self.trigger = trigger

    def start_run(self, source: str, entity: str, trigger: str = None) -> int:
        with self.db.session_scope() as session:
            run = SyncRun(
                source=source,
                entity=entity,
                schedule_trigger=trigger or self.trigger,
                status='running',
                started_at=utc_now()
            )
            session.add(run)
            session.flush()
            return run.id

    def complete_run(self, run_id: int, record_count: int, retry_count: int = 0) -> None:
        with self.db.session_scope() as session:
            run = session.get(SyncRun, run_id)
            run.status = 'completed'
            run.record_count = record_count
            run.retry_count = retry_count
            run.completed_at = utc_now()

    def fail_run(self, run_id: int, error_message: str, retry_count: int = 0) -> None:
        with self.db.session_scope() as session:
            run = session.get(SyncRun, run_id)
            run.status = 'failed'
            run.error_message = (error_message or '')[:MAX_ERROR_LENGTH]
            run.retry_count = retry_count
            run.completed_at = utc_now()
