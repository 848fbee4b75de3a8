"""
Unit Tests for the Sync Scheduler
Next-run computation, cadence precedence and persisted schedule state.
"""

import unittest
from datetime import datetime, timedelta

from ternity_sync.database.models import SyncScheduleState
from ternity_sync.scheduler import ScheduleStateStore, SyncScheduler, next_daily_run, next_frequent_run

from fakes import make_db


class FakePipeline:
    """Records which syncs were requested."""

    def __init__(self):
        self.on_step = None
        self.calls = []

    def run_full_sync(self, trigger='manual', start=None, end=None):
        self.calls.append(('full', trigger))

    def run_frequent_sync(self, trigger='frequent'):
        self.calls.append(('frequent', trigger))


class TestNextRuns(unittest.TestCase):

    def test_next_daily_later_today(self):
        self.assertEqual(next_daily_run(datetime(2024, 5, 1, 2, 0), 3), datetime(2024, 5, 1, 3, 0))

    def test_next_daily_strictly_after_now(self):
        self.assertEqual(next_daily_run(datetime(2024, 5, 1, 3, 0), 3), datetime(2024, 5, 2, 3, 0))
        self.assertEqual(next_daily_run(datetime(2024, 5, 1, 4, 30), 3), datetime(2024, 5, 2, 3, 0))

    def test_next_daily_across_month_end(self):
        self.assertEqual(next_daily_run(datetime(2024, 2, 29, 23, 0), 3), datetime(2024, 3, 1, 3, 0))

    def test_next_frequent(self):
        self.assertEqual(next_frequent_run(datetime(2024, 5, 1, 2, 0), 4), datetime(2024, 5, 1, 6, 0))


class TestSyncScheduler(unittest.TestCase):
    """Test scheduler ticks against persisted state."""

    def setUp(self):
        self.db = make_db()
        self.now = datetime(2024, 5, 1, 10, 0)
        self.pipeline = FakePipeline()
        self.state = ScheduleStateStore(self.db)
        self.scheduler = SyncScheduler(
            self.pipeline, self.state, frequent_hours=4, daily_hour_utc=3, clock=lambda: self.now
        )

    def tearDown(self):
        self.db.dispose()

    def stored(self) -> SyncScheduleState:
        return self.state.get_or_create()

    def test_both_due_runs_only_full_sync(self):
        result = self.scheduler.tick()

        self.assertEqual(result, 'daily')
        self.assertEqual(self.pipeline.calls, [('full', 'daily')])

        state = self.stored()
        self.assertEqual(state.next_daily_run_at, datetime(2024, 5, 2, 3, 0))
        self.assertEqual(state.next_frequent_run_at, datetime(2024, 5, 1, 14, 0))
        self.assertEqual(state.last_daily_run_at, self.now)
        self.assertEqual(state.last_frequent_run_at, self.now)

    def test_nothing_due(self):
        self.scheduler.tick()
        self.now += timedelta(minutes=1)

        self.assertIsNone(self.scheduler.tick())
        self.assertEqual(len(self.pipeline.calls), 1)
        self.assertEqual(self.stored().scheduler_heartbeat_at, self.now)

    def test_frequent_due(self):
        self.scheduler.tick()
        self.now += timedelta(hours=4, minutes=1)

        self.assertEqual(self.scheduler.tick(), 'frequent')
        self.assertEqual(self.pipeline.calls[-1], ('frequent', 'frequent'))
        self.assertEqual(self.stored().next_frequent_run_at, self.now + timedelta(hours=4))
        self.assertEqual(self.stored().next_daily_run_at, datetime(2024, 5, 2, 3, 0))

    def test_daily_due_next_day(self):
        self.scheduler.tick()
        self.now = datetime(2024, 5, 2, 3, 0)

        self.assertEqual(self.scheduler.tick(), 'daily')
        self.assertEqual(self.stored().next_daily_run_at, datetime(2024, 5, 3, 3, 0))

    def test_startup_runs_full_sync(self):
        self.scheduler.startup()

        self.assertEqual(self.pipeline.calls, [('full', 'daily')])
        state = self.stored()
        self.assertEqual(state.scheduler_started_at, self.now)
        self.assertGreater(state.next_frequent_run_at, self.now)
        self.assertGreater(state.next_daily_run_at, self.now)

    def test_no_sync_after_shutdown_requested(self):
        self.scheduler.request_shutdown()

        self.assertIsNone(self.scheduler.tick())
        self.assertEqual(self.pipeline.calls, [])

    def test_steps_refresh_heartbeat(self):
        self.pipeline.on_step('extract toggl')

        self.assertEqual(self.stored().scheduler_heartbeat_at, self.now)

    def test_from_config(self):
        scheduler = SyncScheduler.from_config(
            FakePipeline(), self.state, {'frequent_hours': '2', 'daily_hour_utc': '5', 'check_interval_seconds': 30}
        )

        self.assertEqual(scheduler.frequent_hours, 2.0)
        self.assertEqual(scheduler.daily_hour_utc, 5)
        self.assertEqual(scheduler.check_interval_seconds, 30)


if __name__ == '__main__':
    unittest.main()
