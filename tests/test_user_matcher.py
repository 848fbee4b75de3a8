"""
Unit Tests for User Matching
Email matching across sources, name-derived matching and dry-run purity.
"""

import unittest

from ternity_sync.database.models import StgTogglTimeEntry, StgTogglUser, StgTtAbsence, StgTtUser, SyncMapping, User
from ternity_sync.extract.staging import StagingStore
from ternity_sync.transform.users import UserMatcher, format_match_report

from fakes import make_db, toggl_entry, tt_absence


class UserMatcherTestCase(unittest.TestCase):

    def setUp(self):
        self.db = make_db()
        self.staging = StagingStore(self.db)
        self.matcher = UserMatcher(
            self.db,
            candidate_domains=['example.com'],
            ignore_emails=['broken@example.com'],
            ignore_names=['Test User']
        )

    def tearDown(self):
        self.db.dispose()

    def users(self):
        with self.db.session_scope() as session:
            return session.query(User).order_by(User.id).all()

    def mapping_count(self):
        with self.db.session_scope() as session:
            return session.query(SyncMapping).count()


class TestEmailMatching(UserMatcherTestCase):
    """Test phase 1 matching by email."""

    def setUp(self):
        super().setUp()
        self.staging.replace_all(StgTogglUser, [
            {'id': 11, 'email': 'Jane.Doe@example.com', 'name': 'Jane Doe'},
            {'id': 12, 'email': 'sam@example.com', 'name': 'Sam'},
        ])
        self.staging.replace_all(StgTtUser, [
            {'id': 22, 'email': 'jane.doe@example.com', 'firstname': 'Jane', 'surname': 'Doe'},
            {'id': 23, 'email': 'broken@example.com', 'firstname': 'Broken', 'surname': 'Record'},
        ])

    def test_shared_email_creates_one_user_with_both_ids(self):
        report = self.matcher.match_users(apply=True)

        self.assertEqual(len(report.created), 2)
        users = self.users()
        self.assertEqual(len(users), 2)

        jane = users[0]
        self.assertEqual(jane.email, 'jane.doe@example.com')
        self.assertEqual(jane.display_name, 'Jane Doe')
        self.assertEqual(jane.toggl_id, '11')
        self.assertEqual(jane.timetastic_id, '22')
        self.assertEqual(users[1].display_name, 'sam')
        self.assertEqual(self.mapping_count(), 3)

    def test_rerun_is_idempotent(self):
        self.matcher.match_users(apply=True)
        report = self.matcher.match_users(apply=True)

        self.assertEqual(len(report.created), 0)
        self.assertEqual(len(report.matched), 2)
        self.assertEqual(len(self.users()), 2)
        self.assertEqual(self.mapping_count(), 3)

    def test_existing_user_is_linked(self):
        with self.db.session_scope() as session:
            session.add(User(display_name='Jane', email='JANE.DOE@example.com'))

        report = self.matcher.match_users(apply=True)

        self.assertEqual([m.email for m in report.matched], ['jane.doe@example.com'])
        jane = self.users()[0]
        self.assertEqual(jane.display_name, 'Jane')
        self.assertEqual((jane.toggl_id, jane.timetastic_id), ('11', '22'))

    def test_id_owned_by_another_user_not_copied(self):
        with self.db.session_scope() as session:
            session.add(User(display_name='Old Jane', email='old@example.com', toggl_id='11'))

        self.matcher.match_users(apply=True)

        jane = [u for u in self.users() if u.email == 'jane.doe@example.com'][0]
        self.assertIsNone(jane.toggl_id)
        self.assertEqual(jane.timetastic_id, '22')

    def test_dry_run_writes_nothing_and_matches_apply(self):
        dry = self.matcher.match_users(apply=False)

        self.assertEqual(self.users(), [])
        self.assertEqual(self.mapping_count(), 0)
        self.assertTrue(all(c.user_id is None for c in dry.created))

        applied = self.matcher.match_users(apply=True)

        self.assertEqual(
            sorted(c.email for c in dry.created),
            sorted(c.email for c in applied.created)
        )
        self.assertEqual(len(dry.matched), len(applied.matched))
        self.assertEqual(len(dry.unmatched), len(applied.unmatched))

    def test_report_formatting(self):
        text = format_match_report(self.matcher.match_users(apply=False))

        self.assertIn('Would create (2)', text)
        self.assertIn('--apply', text)
        self.assertIn('jane.doe@example.com', text)


class TestNameMatching(UserMatcherTestCase):
    """Test phase 2 matching of referenced but unlisted users."""

    def setUp(self):
        super().setUp()
        self.staging.replace_all(StgTogglUser, [{'id': 11, 'email': 'jose.garcia@example.com'}])
        # Deactivated Timetastic users are absent from the user list
        self.staging.replace_all(StgTtAbsence, [
            tt_absence(1, 99, '2024-01-02', '2024-01-02', userName='José María García'),
            tt_absence(2, 98, '2024-01-03', '2024-01-03', userName='Nobody Known'),
            tt_absence(3, 97, '2024-01-04', '2024-01-04', userName='Test User'),
        ])

    def test_referenced_user_matched_by_derived_email(self):
        report = self.matcher.match_users(apply=True)

        by_name = [m for m in report.matched if m.method == 'name']
        self.assertEqual(len(by_name), 1)
        self.assertEqual(by_name[0].email, 'jose.garcia@example.com')
        self.assertEqual(by_name[0].timetastic_id, '99')

        jose = self.users()[0]
        self.assertEqual(jose.timetastic_id, '99')
        with self.db.session_scope() as session:
            mapping = session.query(SyncMapping).filter(
                SyncMapping.source == 'timetastic',
                SyncMapping.external_id == '99'
            ).one()
            self.assertEqual(mapping.target_id, jose.id)

    def test_unmatched_and_ignored(self):
        report = self.matcher.match_users(apply=True)

        self.assertEqual([(u.name, u.external_id) for u in report.unmatched], [('Nobody Known', '98')])

    def test_dry_run_matches_planned_user(self):
        report = self.matcher.match_users(apply=False)

        by_name = [m for m in report.matched if m.method == 'name']
        self.assertEqual(len(by_name), 1)
        self.assertIsNone(by_name[0].user_id)
        self.assertEqual(self.users(), [])

    def test_time_entry_users_probed(self):
        self.staging.replace_all(StgTogglTimeEntry, [
            toggl_entry(500, '2024-01-02T09:00:00Z', user_id=55, username='Ann Lee'),
        ])
        with self.db.session_scope() as session:
            session.add(User(display_name='Ann Lee', email='ann.lee@example.com'))

        report = self.matcher.match_users(apply=True)

        self.assertIn(('ann.lee@example.com', '55'), [(m.email, m.toggl_id) for m in report.matched])


if __name__ == '__main__':
    unittest.main()
