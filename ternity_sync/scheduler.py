"""
Sync Scheduler Module
Long-running process: a full sync at startup, then a fixed-interval check that
triggers the daily (full) or frequent (light) sync from persisted next-run times.
"""

import signal
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.database.models import SyncScheduleState
from ternity_sync.pipeline import SyncPipeline
from ternity_sync.utils.helpers import utc_now
from ternity_sync.utils.logger import LoggerMixin


def next_frequent_run(now: datetime, frequent_hours: float) -> datetime:
    return now + timedelta(hours=frequent_hours)


def next_daily_run(now: datetime, daily_hour_utc: int) -> datetime:
    """
    Next occurrence of daily_hour_utc:00 strictly after now.

    Args:
        now: Naive UTC datetime

    Returns:
        Naive UTC datetime
    """
    trigger = CronTrigger(hour=daily_hour_utc, minute=0, second=0, timezone=pytz.utc)
    aware_now = pytz.utc.localize(now)
    fire_time = trigger.get_next_fire_time(None, aware_now)

    if fire_time <= aware_now:
        fire_time = fire_time + timedelta(days=1)

    return fire_time.astimezone(pytz.utc).replace(tzinfo=None)


class ScheduleStateStore:
    """Reads and writes the singleton sync_schedule_state row."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def get_or_create(self, now: datetime = None) -> SyncScheduleState:
        with self.db.session_scope() as session:
            state = session.query(SyncScheduleState).order_by(SyncScheduleState.id).first()
            if state is None:
                now = now or utc_now()
                state = SyncScheduleState(scheduler_started_at=now, scheduler_heartbeat_at=now)
                session.add(state)
                session.flush()
            return state

    def _update(self, **values) -> None:
        with self.db.session_scope() as session:
            state = session.query(SyncScheduleState).order_by(SyncScheduleState.id).first()
            if state is None:
                state = SyncScheduleState()
                session.add(state)
            for key, value in values.items():
                setattr(state, key, value)

    def mark_started(self, now: datetime) -> None:
        self._update(scheduler_started_at=now, scheduler_heartbeat_at=now)

    def heartbeat(self, now: datetime = None) -> None:
        self._update(scheduler_heartbeat_at=now or utc_now())

    def mark_frequent(self, now: datetime, next_run: datetime) -> None:
        self._update(last_frequent_run_at=now, next_frequent_run_at=next_run, scheduler_heartbeat_at=now)

    def mark_daily(self, now: datetime, next_run: datetime) -> None:
        self._update(last_daily_run_at=now, next_daily_run_at=next_run, scheduler_heartbeat_at=now)


class SyncScheduler(LoggerMixin):
    """
    Two cadences over one state row. Daily supersedes frequent within a tick.

    Shutdown is cooperative: an in-flight sync finishes, no new one starts.
    """

    def __init__(
        self,
        pipeline: SyncPipeline,
        state: ScheduleStateStore,
        frequent_hours: float = 4,
        daily_hour_utc: int = 3,
        check_interval_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now
    ):
        self.pipeline = pipeline
        self.state = state
        self.frequent_hours = frequent_hours
        self.daily_hour_utc = daily_hour_utc
        self.check_interval_seconds = check_interval_seconds
        self.clock = clock
        self.shutdown_requested = False
        self._scheduler: Optional[BlockingScheduler] = None

        # Long syncs keep the heartbeat fresh step by step
        if pipeline.on_step is None:
            pipeline.on_step = lambda step: self.state.heartbeat(self.clock())

    @classmethod
    def from_config(cls, pipeline: SyncPipeline, state: ScheduleStateStore, config: dict) -> 'SyncScheduler':
        return cls(
            pipeline,
            state,
            frequent_hours=float(config.get('frequent_hours', 4)),
            daily_hour_utc=int(config.get('daily_hour_utc', 3)),
            check_interval_seconds=int(config.get('check_interval_seconds', 60))
        )

    def _after_daily(self) -> None:
        finished = self.clock()
        self.state.mark_daily(finished, next_daily_run(finished, self.daily_hour_utc))
        self.state.mark_frequent(finished, next_frequent_run(finished, self.frequent_hours))

    def startup(self) -> None:
        """Full sync regardless of persisted state, then schedule both cadences."""
        now = self.clock()
        self.state.get_or_create(now)
        self.state.mark_started(now)

        self.logger.info("Running initial full sync...")
        self.pipeline.run_full_sync(trigger='daily')
        self._after_daily()

    def tick(self) -> Optional[str]:
        """
        One scheduler iteration.

        Returns:
            'daily', 'frequent' or None, naming the sync that ran
        """
        if self.shutdown_requested:
            return None

        now = self.clock()
        self.state.heartbeat(now)
        current = self.state.get_or_create(now)

        if current.next_daily_run_at is None or now >= current.next_daily_run_at:
            self.logger.info("Daily sync triggered.")
            self.pipeline.run_full_sync(trigger='daily')
            self._after_daily()
            return 'daily'

        if current.next_frequent_run_at is None or now >= current.next_frequent_run_at:
            self.logger.info("Frequent sync triggered.")
            self.pipeline.run_frequent_sync(trigger='frequent')
            finished = self.clock()
            self.state.mark_frequent(finished, next_frequent_run(finished, self.frequent_hours))
            return 'frequent'

        return None

    def request_shutdown(self, signum=None, frame=None) -> None:
        self.logger.info(f"Signal {signum} received, shutting down after the current sync...")
        self.shutdown_requested = True
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=True)

    def run_forever(self) -> None:
        """Block running the scheduler until SIGTERM/SIGINT."""
        signal.signal(signal.SIGTERM, self.request_shutdown)
        signal.signal(signal.SIGINT, self.request_shutdown)

        self.logger.info("Sync service starting...")
        self.logger.info(f"  Frequent sync interval: {self.frequent_hours}h")
        self.logger.info(f"  Daily sync hour (UTC): {self.daily_hour_utc}:00")

        self.startup()
        if self.shutdown_requested:
            return

        self._scheduler = BlockingScheduler(
            executors={'default': ThreadPoolExecutor(1)},
            job_defaults={'coalesce': True, 'max_instances': 1},
            timezone=pytz.utc
        )
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.check_interval_seconds, timezone=pytz.utc),
            id='sync_tick',
            name='Sync schedule check'
        )

        self.logger.info("Entering scheduler loop...")
        self._scheduler.start()
        self.logger.info("Sync service shut down gracefully.")
