"""
Unit Tests for Temporal Pattern Analysis

Tests the streak primitives on plain dates and the analyzer windows against
the store.
"""

from datetime import date, datetime, timedelta

import pytest

from workguard.domains.compliance.patterns import (
    TemporalPatternAnalyzer,
    business_date,
    distinct_months,
    first_day_of_month,
    longest_run,
    longest_run_by_client,
    streak_ending_at_latest,
)
from workguard.domains.compliance.repository import ComplianceRepository, WorkRecord
from workguard.domains.compliance.settings import ComplianceSettings
from workguard.models import AllocationStatus, MemberStatus

from tests.conftest import TODAY, fixed_clock


def days_back(*offsets):
    return [TODAY - timedelta(days=offset) for offset in offsets]


class TestStreakEndingAtLatest:
    """Test the backward walk from the most recent date."""

    def test_counts_adjacent_days(self):
        assert streak_ending_at_latest(days_back(0, 1, 2, 4)) == 3

    def test_empty_is_zero(self):
        assert streak_ending_at_latest([]) == 0

    def test_duplicates_count_once(self):
        assert streak_ending_at_latest(days_back(0, 0, 1, 1)) == 2

    def test_anchored_on_latest_date_not_today(self):
        dates = [date(2026, 10, 1), date(2026, 10, 2), date(2026, 10, 3)]
        assert streak_ending_at_latest(dates) == 3

    def test_cap_bounds_the_walk(self):
        dates = days_back(*range(15))
        assert streak_ending_at_latest(dates, max_days=10) == 10
        assert streak_ending_at_latest(dates) == 15


class TestLongestRun:
    """Test the longest run anywhere in a sequence."""

    def test_finds_run_in_the_middle(self):
        dates = [date(2026, 10, d) for d in (1, 2, 3, 5, 6)]
        assert longest_run(dates) == 3

    def test_single_and_empty(self):
        assert longest_run([TODAY]) == 1
        assert longest_run([]) == 0

    def test_runs_do_not_span_clients(self):
        records = [
            WorkRecord(work_date=date(2026, 10, 16), client_id=1, location_id=1,
                       daily_rate=None, status='completed'),
            WorkRecord(work_date=date(2026, 10, 17), client_id=1, location_id=1,
                       daily_rate=None, status='completed'),
            WorkRecord(work_date=date(2026, 10, 18), client_id=2, location_id=2,
                       daily_rate=None, status='completed'),
        ]
        assert longest_run_by_client(records) == {1: 2, 2: 1}


class TestCalendarHelpers:

    def test_distinct_months(self):
        dates = [date(2026, 8, 1), date(2026, 8, 30), date(2026, 10, 2), date(2025, 10, 2)]
        assert distinct_months(dates) == 3

    @pytest.mark.parametrize("day,months_back,expected", [
        (date(2026, 10, 18), 0, date(2026, 10, 1)),
        (date(2026, 10, 18), 3, date(2026, 7, 1)),
        (date(2026, 1, 15), 3, date(2025, 10, 1)),
        (date(2026, 3, 31), 14, date(2025, 1, 1)),
    ])
    def test_first_day_of_month(self, day, months_back, expected):
        assert first_day_of_month(day, months_back) == expected


class TestBusinessDate:

    @pytest.mark.parametrize("moment,timezone_name,expected", [
        (datetime(2026, 10, 18, 12, 0), 'America/Sao_Paulo', date(2026, 10, 18)),
        (datetime(2026, 11, 1, 1, 30), 'America/Sao_Paulo', date(2026, 10, 31)),
        (datetime(2026, 11, 1, 1, 30), 'UTC', date(2026, 11, 1)),
    ])
    def test_business_date(self, moment, timezone_name, expected):
        assert business_date(moment, timezone_name) == expected


class TestTemporalPatternAnalyzer:
    """Test the analyzer windows against stored records."""

    @pytest.fixture
    def analyzer(self, session, settings):
        return TemporalPatternAnalyzer(ComplianceRepository(session), settings, fixed_clock)

    def test_consecutive_days_uses_worked_memberships_only(
        self, analyzer, worker, warehouse, make_membership
    ):
        make_membership(worker, warehouse, TODAY)
        make_membership(worker, warehouse, TODAY - timedelta(days=1), status=MemberStatus.PRESENT)
        make_membership(worker, warehouse, TODAY - timedelta(days=2), status=MemberStatus.ABSENT)
        make_membership(worker, warehouse, TODAY - timedelta(days=3))

        assert analyzer.calculate_consecutive_days(worker.id, warehouse.client_id) == 2

    def test_consecutive_days_ignores_other_clients(
        self, analyzer, worker, warehouse, make_client, make_location, make_membership
    ):
        other = make_location(make_client('Beta Foods'))
        make_membership(worker, warehouse, TODAY)
        make_membership(worker, other, TODAY - timedelta(days=1))

        assert analyzer.calculate_consecutive_days(worker.id, warehouse.client_id) == 1

    def test_consecutive_days_capped(self, analyzer, worker, warehouse, make_membership):
        for offset in range(12):
            make_membership(worker, warehouse, TODAY - timedelta(days=offset))

        assert analyzer.calculate_consecutive_days(worker.id, warehouse.client_id) == 10

    def test_consecutive_days_outside_window_ignored(
        self, analyzer, worker, warehouse, make_membership
    ):
        make_membership(worker, warehouse, TODAY - timedelta(days=45))
        make_membership(worker, warehouse, TODAY - timedelta(days=46))

        assert analyzer.calculate_consecutive_days(worker.id, warehouse.client_id) == 0

    def test_days_in_month_bounded_to_today(
        self, analyzer, worker, warehouse, make_allocation
    ):
        for day in (date(2026, 10, 1), date(2026, 10, 5), TODAY):
            make_allocation(worker, warehouse, day)
        make_allocation(worker, warehouse, date(2026, 9, 30))
        make_allocation(worker, warehouse, date(2026, 10, 20))
        make_allocation(worker, warehouse, date(2026, 10, 2), status=AllocationStatus.CANCELLED)

        assert analyzer.days_in_month(worker.id, warehouse.client_id) == 3

    def test_months_with_client(self, analyzer, worker, warehouse, make_allocation):
        for day in (date(2026, 7, 5), date(2026, 8, 3), date(2026, 8, 4), date(2026, 10, 1)):
            make_allocation(worker, warehouse, day)
        make_allocation(worker, warehouse, date(2026, 6, 30))

        assert analyzer.months_with_client(worker.id, warehouse.client_id) == 3

    def test_location_streak_scoped_to_location(
        self, analyzer, worker, warehouse, make_location, acme, make_allocation
    ):
        dock = make_location(acme, name='Dock 2')
        make_allocation(worker, warehouse, TODAY)
        make_allocation(worker, warehouse, TODAY - timedelta(days=1))
        make_allocation(worker, dock, TODAY - timedelta(days=2))

        assert analyzer.location_consecutive_days(worker.id, warehouse.id) == 2
        assert analyzer.location_consecutive_days(worker.id, dock.id) == 1

    def test_no_history_gives_zero_pattern(self, analyzer, worker, warehouse):
        pattern = analyzer.location_pattern(worker.id, warehouse.client_id, warehouse.id)

        assert pattern.consecutive_days == 0
        assert pattern.days_in_month == 0
        assert pattern.months_with_client == 0

    def test_month_boundary_follows_business_timezone(
        self, session, worker, warehouse, make_allocation
    ):
        # 22:30 on Oct 31 in Sao Paulo is already Nov 1 in UTC
        late_evening = datetime(2026, 11, 1, 1, 30)
        for day in (date(2026, 10, 30), date(2026, 10, 31)):
            make_allocation(worker, warehouse, day)

        def analyzer_in(timezone_name):
            settings = ComplianceSettings(business_timezone=timezone_name)
            return TemporalPatternAnalyzer(
                ComplianceRepository(session), settings, lambda: late_evening
            )

        assert analyzer_in('America/Sao_Paulo').today() == date(2026, 10, 31)
        assert analyzer_in('America/Sao_Paulo').days_in_month(worker.id, warehouse.client_id) == 2
        assert analyzer_in('UTC').days_in_month(worker.id, warehouse.client_id) == 0
