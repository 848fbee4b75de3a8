"""
Unit Tests for the Sync Pipeline
Step ordering and failure isolation for full and frequent syncs.
"""

import unittest
from datetime import date

from ternity_sync.database.models import SyncRun, TimeEntry, User
from ternity_sync.pipeline import SyncPipeline
from ternity_sync.utils.logger import current_sync_step

from fakes import FakeTimetasticClient, FakeTogglClient, make_db, toggl_entry


class TestSyncPipeline(unittest.TestCase):

    def setUp(self):
        self.db = make_db()
        self.steps = []

    def tearDown(self):
        self.db.dispose()

    def pipeline(self, toggl, timetastic):
        return SyncPipeline(self.db, toggl, timetastic, on_step=self.steps.append)

    def runs(self):
        with self.db.session_scope() as session:
            return session.query(SyncRun).order_by(SyncRun.id).all()

    def test_full_sync_end_to_end(self):
        toggl = FakeTogglClient(
            users=[{'id': 1, 'email': 'jane.doe@example.com'}],
            projects=[{'id': 10, 'name': 'Website'}],
            entries=[toggl_entry(100, '2024-01-02T09:00:00Z', user_id=1, project_id=10)]
        )
        timetastic = FakeTimetasticClient(users=[{'id': 7, 'email': 'jane.doe@example.com'}])

        summary = self.pipeline(toggl, timetastic).run_full_sync(
            'manual', date(2024, 1, 1), date(2024, 1, 31)
        )

        self.assertTrue(summary.ok)
        self.assertEqual(self.steps[:3], ['extract toggl', 'extract timetastic', 'match users'])
        self.assertEqual(self.steps[-1], 'transform absences')

        with self.db.session_scope() as session:
            user = session.query(User).one()
            self.assertEqual((user.toggl_id, user.timetastic_id), ('1', '7'))
            self.assertEqual(session.query(TimeEntry).count(), 1)

        self.assertTrue(all(run.schedule_trigger == 'manual' for run in self.runs()))
        self.assertIn(('pipeline', 'match_users'), [(r.source, r.entity) for r in self.runs()])

    def test_failures_do_not_stop_later_steps(self):
        toggl = FakeTogglClient(fail=['users', 'time_entries'])
        timetastic = FakeTimetasticClient(fail=['users', 'departments', 'leave_types', 'absences'])

        summary = self.pipeline(toggl, timetastic).run_full_sync(
            'daily', date(2024, 1, 1), date(2024, 1, 31)
        )

        self.assertFalse(summary.ok)
        self.assertIn('extract toggl/users', summary.failures)
        self.assertIn('extract toggl/time_entries', summary.failures)
        self.assertIn('extract timetastic/absences', summary.failures)
        self.assertNotIn('extract toggl/projects', summary.failures)

        # Every transform still ran
        completed = {r.entity for r in self.runs() if r.status == 'completed'}
        self.assertIn('transform:clients', completed)
        self.assertIn('transform:absences', completed)
        self.assertIn('match_users', completed)

    def test_frequent_sync_steps(self):
        toggl = FakeTogglClient()
        timetastic = FakeTimetasticClient()
        pipeline = self.pipeline(toggl, timetastic)

        summary = pipeline.run_frequent_sync()

        self.assertTrue(summary.ok)
        self.assertEqual(self.steps[:3], [
            'extract toggl/time_entries', 'extract timetastic/absences', 'match users'
        ])
        extracted = {r.entity for r in self.runs() if r.source in ('toggl', 'timetastic') and not r.entity.startswith('transform:')}
        self.assertEqual(extracted, {'time_entries', 'absences'})
        self.assertTrue(all(run.schedule_trigger == 'frequent' for run in self.runs()))

    def test_raising_step_recorded(self):
        pipeline = self.pipeline(FakeTogglClient(), FakeTimetasticClient())

        def broken():
            raise RuntimeError('boom')

        summary = pipeline.run_steps('Custom', [('ok step', lambda: None), ('broken step', broken)])

        self.assertEqual(summary.failures, ['broken step'])
        self.assertEqual(self.steps, ['ok step', 'broken step'])

    def test_steps_run_under_their_name(self):
        pipeline = self.pipeline(FakeTogglClient(), FakeTimetasticClient())
        seen = []

        pipeline.run_steps('Custom', [
            ('first', lambda: seen.append(current_sync_step())),
            ('second', lambda: seen.append(current_sync_step())),
        ])

        self.assertEqual(seen, ['first', 'second'])
        self.assertIsNone(current_sync_step())


if __name__ == '__main__':
    unittest.main()
