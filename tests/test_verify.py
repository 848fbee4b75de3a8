"""
Unit Tests for Verification
Per-year comparison of Toggl counts with staging.
"""

import unittest
from datetime import date

from ternity_sync.database.models import StgTogglTimeEntry
from ternity_sync.extract.staging import StagingStore
from ternity_sync.verify import TogglVerifier

from fakes import FakeTogglClient, make_db, toggl_entry


class TestTogglVerifier(unittest.TestCase):

    def setUp(self):
        self.db = make_db()
        StagingStore(self.db).upsert_batch(StgTogglTimeEntry, [
            toggl_entry(1, '2023-03-01T09:00:00Z'),
            toggl_entry(2, '2023-12-31T22:00:00Z'),
            toggl_entry(3, '2024-01-01T08:00:00Z'),
        ])

    def tearDown(self):
        self.db.dispose()

    def test_all_years_match(self):
        client = FakeTogglClient(year_counts={2023: 2, 2024: 1})

        result = TogglVerifier(client, self.db).verify(2023, 2024, today=date(2024, 6, 30))

        self.assertTrue(result.all_match)
        self.assertEqual([y.year for y in result.years], [2023, 2024])
        self.assertEqual(client.count_calls[1], (date(2024, 1, 1), date(2024, 6, 30)))
        self.assertEqual(result.total_staging, 3)

    def test_mismatch_reported_per_year(self):
        client = FakeTogglClient(year_counts={2023: 3, 2024: 0})

        result = TogglVerifier(client, self.db).verify(2023, 2024, today=date(2024, 6, 30))

        self.assertFalse(result.all_match)
        self.assertEqual([y.diff for y in result.years], [-1, 1])
        # Totals agree even though individual years do not
        self.assertEqual(result.total_toggl, result.total_staging)

    def test_future_years_skipped(self):
        client = FakeTogglClient(year_counts={2024: 1})

        result = TogglVerifier(client, self.db).verify(2024, 2026, today=date(2024, 6, 30))

        self.assertEqual([y.year for y in result.years], [2024])

    def test_staging_count_by_entry_date(self):
        verifier = TogglVerifier(FakeTogglClient(), self.db)

        self.assertEqual(verifier.count_staging(date(2023, 1, 1), date(2023, 12, 31)), 2)


if __name__ == '__main__':
    unittest.main()
