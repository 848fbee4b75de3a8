"""
Verification Module
Read-only audit comparing Toggl's own time-entry counts with staging, per year.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List

from sqlalchemy import func

from ternity_sync.clients.toggl import TogglClient
from ternity_sync.database.connection import DatabaseConnection
from ternity_sync.database.models import StgTogglTimeEntry
from ternity_sync.utils.helpers import utc_today
from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class YearComparison:
    year: int
    toggl: int
    staging: int

    @property
    def diff(self) -> int:
        return self.staging - self.toggl

    @property
    def match(self) -> bool:
        return self.diff == 0


@dataclass
class VerificationResult:
    years: List[YearComparison] = field(default_factory=list)

    @property
    def total_toggl(self) -> int:
        return sum(y.toggl for y in self.years)

    @property
    def total_staging(self) -> int:
        return sum(y.staging for y in self.years)

    @property
    def all_match(self) -> bool:
        return all(y.match for y in self.years)


def _signed(diff: int) -> str:
    return f" ({'+' if diff > 0 else ''}{diff})" if diff else ''


class TogglVerifier:
    """Counts never get corrected here; drift is only reported."""

    def __init__(self, client: TogglClient, db: DatabaseConnection):
        self.client = client
        self.db = db

    def count_staging(self, start: date, end: date) -> int:
        with self.db.session_scope() as session:
            return session.query(func.count(StgTogglTimeEntry.id)).filter(
                StgTogglTimeEntry.entry_date >= start,
                StgTogglTimeEntry.entry_date <= end
            ).scalar() or 0

    def verify(self, from_year: int = 2020, to_year: int = None, today: date = None) -> VerificationResult:
        """
        Compare counts for each year in [from_year, to_year].

        The running year is counted up to today.
        """
        today = today or utc_today()
        to_year = to_year or today.year
        result = VerificationResult()

        logger.info(f"Verifying Toggl time entries: {from_year}-{to_year}")

        for year in range(from_year, to_year + 1):
            start = date(year, 1, 1)
            end = min(date(year, 12, 31), today)
            if start > end:
                break

            logger.info(f"  {year}: querying Toggl...")
            comparison = YearComparison(
                year=year,
                toggl=self.client.count_time_entries(start, end),
                staging=self.count_staging(start, end)
            )
            result.years.append(comparison)

            logger.info(
                f"  {year}: Toggl={comparison.toggl:,} Staging={comparison.staging:,} "
                f"{'✓' if comparison.match else '✗'}{_signed(comparison.diff)}"
            )

        total_diff = result.total_staging - result.total_toggl
        logger.info(
            f"  Total: Toggl={result.total_toggl:,} Staging={result.total_staging:,} "
            f"{'✓' if result.all_match else '✗'}{_signed(total_diff)}"
        )
        if result.all_match:
            logger.info("  All counts match!")
        elif total_diff:
            logger.info(
                f"  Discrepancy: {abs(total_diff):,} entries "
                f"{'missing from' if total_diff < 0 else 'extra in'} staging"
            )

        return result
