"""
Temporal Pattern Analysis for Labor Risk

Extracts the work-pattern signals that drive the risk scorers:
- Consecutive-day streaks at one client (or one client location)
- Days worked at a client in the current calendar month
- Multi-month tenure with a client

The streak functions are pure and operate on plain dates so they can be
exercised without a database. The analyzer class binds them to the store.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

import pytz

from ...models import MemberStatus, utcnow
from .repository import ComplianceRepository, WorkRecord
from .settings import ComplianceSettings

ONE_DAY = timedelta(days=1)

# Membership states that count as days actually worked
WORKED_STATUSES = (MemberStatus.COMPLETED, MemberStatus.PRESENT)


def streak_ending_at_latest(dates: Iterable[date], max_days: Optional[int] = None) -> int:
    """
    Length of the run of calendar-adjacent dates ending at the most recent date.

    The run is anchored on the latest recorded date, not on today: a worker
    whose last day was a week ago still reports that streak.

    Args:
        dates: Work dates in any order, duplicates allowed
        max_days: Upper bound on the count (None for unbounded)

    Returns:
        Streak length, 0 when there are no dates
    """
    worked = set(dates)
    if not worked:
        return 0

    current = max(worked)
    streak = 0
    while current in worked:
        streak += 1
        if max_days is not None and streak >= max_days:
            break
        current -= ONE_DAY
    return streak


def longest_run(dates: Iterable[date]) -> int:
    """
    Longest run of calendar-adjacent dates anywhere in the sequence.

    Sorted ascending, a counter grows while the gap to the previous date is
    exactly one day and resets otherwise.
    """
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    best = current = 1
    for previous, following in zip(ordered, ordered[1:]):
        if following - previous == ONE_DAY:
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best


def longest_run_by_client(records: Iterable[WorkRecord]) -> Dict[int, int]:
    """Longest consecutive run per client id."""
    dates_by_client: Dict[int, List[date]] = defaultdict(list)
    for record in records:
        dates_by_client[record.client_id].append(record.work_date)
    return {client_id: longest_run(dates) for client_id, dates in dates_by_client.items()}


def distinct_months(dates: Iterable[date]) -> int:
    """Number of distinct (year, month) pairs."""
    return len({(d.year, d.month) for d in dates})


def business_date(moment: datetime, timezone_name: str) -> date:
    """Calendar day of a naive UTC moment as seen in the business timezone."""
    return pytz.utc.localize(moment).astimezone(pytz.timezone(timezone_name)).date()


def first_day_of_month(day: date, months_back: int = 0) -> date:
    """First day of the month `months_back` months before `day`'s month."""
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


@dataclass
class LocationPattern:
    """Pattern signals for the location-scoped risk formula."""
    consecutive_days: int
    days_in_month: int
    months_with_client: int


class TemporalPatternAnalyzer:
    """
    Computes work-pattern signals for a worker from the store.

    All windows are anchored on the injected clock so results are
    reproducible in tests.
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        settings: Optional[ComplianceSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.settings = settings or ComplianceSettings()
        self.clock = clock

    def today(self) -> date:
        return business_date(self.clock(), self.settings.business_timezone)

    def window_start(self) -> date:
        return self.today() - timedelta(days=self.settings.lookback_days)

    def calculate_consecutive_days(self, worker_id: int, client_id: int) -> int:
        """
        Consecutive worked days at a client, from completed/present memberships.

        Walks back from the most recent worked day inside the lookback window,
        bounded by the configured iteration cap.
        """
        records = self.repository.find_membership_records(
            worker_id,
            client_id=client_id,
            start=self.window_start(),
            statuses=WORKED_STATUSES,
        )
        return streak_ending_at_latest(
            (record.work_date for record in records),
            max_days=self.settings.streak_max_iterations,
        )

    def location_consecutive_days(self, worker_id: int, location_id: int) -> int:
        """Unbounded streak over allocations at one location in the window."""
        records = self.repository.find_allocation_records(
            worker_id, location_id=location_id, start=self.window_start()
        )
        return streak_ending_at_latest(record.work_date for record in records)

    def days_in_month(self, worker_id: int, client_id: int) -> int:
        """Allocations at the client from the first of this month up to today."""
        today = self.today()
        records = self.repository.find_allocation_records(
            worker_id,
            client_id=client_id,
            start=first_day_of_month(today),
            end=today,
        )
        return len(records)

    def months_with_client(self, worker_id: int, client_id: int) -> int:
        """Distinct calendar months with an allocation at the client."""
        start = first_day_of_month(self.today(), self.settings.tenure_months)
        records = self.repository.find_allocation_records(
            worker_id, client_id=client_id, start=start
        )
        return distinct_months(record.work_date for record in records)

    def location_pattern(
        self, worker_id: int, client_id: int, location_id: int
    ) -> LocationPattern:
        return LocationPattern(
            consecutive_days=self.location_consecutive_days(worker_id, location_id),
            days_in_month=self.days_in_month(worker_id, client_id),
            months_with_client=self.months_with_client(worker_id, client_id),
        )

    def completed_records(self, worker_id: int) -> List[WorkRecord]:
        """Completed memberships across all clients inside the lookback window."""
        return self.repository.find_membership_records(
            worker_id,
            start=self.window_start(),
            statuses=(MemberStatus.COMPLETED,),
        )
