"""
Unit Tests for the Risk Scorers

Tests the location-scoped allocation formula and the fleet composite,
including factor breakdowns and money rounding.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from workguard.domains.compliance.patterns import LocationPattern
from workguard.domains.compliance.repository import WorkRecord
from workguard.domains.compliance.scorer import FleetRiskScorer, LocationRiskScorer
from workguard.models import RiskLevel, Worker


def record(day, client_id=1, rate=Decimal('150.00')):
    return WorkRecord(
        work_date=day, client_id=client_id, location_id=client_id,
        daily_rate=rate, status='completed',
    )


class TestLocationRiskScorer:
    """Test score = consecutive × 10 + month days × 5 + months × 20."""

    def test_critical_pattern(self):
        risk = LocationRiskScorer.compute_score(LocationPattern(8, 8, 2))

        assert risk.score == 160
        assert risk.level == RiskLevel.CRITICAL
        assert risk.is_flagged

    def test_medium_pattern(self):
        risk = LocationRiskScorer.compute_score(LocationPattern(5, 3, 1))

        assert risk.score == 85
        assert risk.level == RiskLevel.MEDIUM
        assert not risk.is_flagged

    def test_empty_pattern(self):
        risk = LocationRiskScorer.compute_score(LocationPattern(0, 0, 0))

        assert risk.score == 0
        assert risk.level == RiskLevel.LOW

    def test_to_dict_keys(self):
        data = LocationRiskScorer.compute_score(LocationPattern(1, 2, 3)).to_dict()

        assert data == {
            'score': 80,
            'level': 'medium',
            'consecutiveDays': 1,
            'daysInMonth': 2,
            'monthsCount': 3,
        }


class TestFleetRiskScorer:
    """Test the capped additive composite."""

    @pytest.mark.parametrize("consecutive,days,autonomy,blocked,expected", [
        (3, 20, 10, True, 100),
        (5, 25, 0, True, 100),
        (2, 15, 40, False, 55),
        (1, 10, 50, False, 20),
        (0, 0, 100, False, 0),
        (0, 9, 29, False, 30),
        (0, 0, 30, False, 15),
        (0, 0, 49, False, 15),
    ])
    def test_compute_score(self, consecutive, days, autonomy, blocked, expected):
        score, _ = FleetRiskScorer.compute_score(consecutive, days, autonomy, blocked)
        assert score == expected

    def test_breakdown_explains_score(self):
        score, breakdown = FleetRiskScorer.compute_score(3, 20, 10, True)

        assert breakdown == {
            'consecutiveDays': 40,
            'daysWorked': 20,
            'lowAutonomy': 30,
            'blocked': 10,
        }
        assert score == FleetRiskScorer.MAX_SCORE

    @pytest.fixture
    def worker(self):
        return Worker(id=7, full_name='Maria Souza', cpf='98765432100',
                      is_blocked=False, block_reason=None)

    def test_assess_five_day_streak(self, worker):
        records = [record(date(2026, 10, 14) + timedelta(days=i)) for i in range(5)]

        assessment = FleetRiskScorer.assess_worker(worker, records, autonomy_score=0)

        assert assessment.max_consecutive_days == 5
        assert assessment.total_days_worked == 5
        assert assessment.avg_daily_rate == Decimal('150.00')
        assert assessment.financial_exposure == Decimal('750.00')
        assert assessment.risk_score == 70
        assert assessment.risk_level == RiskLevel.CRITICAL
        assert assessment.clients_with_consecutive_days == 1

    def test_exposure_uses_unrounded_average(self, worker):
        records = [
            record(date(2026, 10, 16), rate=Decimal('100.00')),
            record(date(2026, 10, 17), rate=Decimal('100.00')),
            record(date(2026, 10, 18), rate=Decimal('101.00')),
        ]

        assessment = FleetRiskScorer.assess_worker(worker, records, autonomy_score=80)

        assert assessment.avg_daily_rate == Decimal('100.33')
        assert assessment.financial_exposure == Decimal('301.00')

    def test_streak_never_spans_clients(self, worker):
        records = [
            record(date(2026, 10, 16), client_id=1),
            record(date(2026, 10, 17), client_id=1),
            record(date(2026, 10, 18), client_id=2),
        ]

        assessment = FleetRiskScorer.assess_worker(worker, records, autonomy_score=80)

        assert assessment.max_consecutive_days == 2
        assert assessment.clients_with_consecutive_days == 2
        assert assessment.breakdown['consecutiveDays'] == 25

    def test_missing_rates_count_as_zero(self, worker):
        records = [record(date(2026, 10, 17), rate=None), record(date(2026, 10, 18))]

        assessment = FleetRiskScorer.assess_worker(worker, records, autonomy_score=80)

        assert assessment.avg_daily_rate == Decimal('75.00')

    def test_no_records(self, worker):
        assessment = FleetRiskScorer.assess_worker(worker, [], autonomy_score=80)

        assert assessment.max_consecutive_days == 0
        assert assessment.financial_exposure == Decimal('0.00')
        assert assessment.risk_score == 0

    def test_summarize(self, worker):
        streak = [record(date(2026, 10, 14) + timedelta(days=i)) for i in range(5)]
        critical = FleetRiskScorer.assess_worker(worker, streak, autonomy_score=0)
        low = FleetRiskScorer.assess_worker(worker, [], autonomy_score=80)

        summary = FleetRiskScorer.summarize([critical, low])

        assert summary['totalWorkers'] == 2
        assert summary['criticalRisk'] == 1
        assert summary['lowRisk'] == 1
        assert summary['totalFinancialExposure'] == 750.0
        assert summary['avgRiskScore'] == 35.0
        assert summary['workersBlocked'] == 0

    def test_summarize_keeps_unrounded_mean(self, worker):
        streak = [record(date(2026, 10, 14) + timedelta(days=i)) for i in range(5)]
        critical = FleetRiskScorer.assess_worker(worker, streak, autonomy_score=0)
        low = FleetRiskScorer.assess_worker(worker, [], autonomy_score=80)

        summary = FleetRiskScorer.summarize([critical, low, low])

        assert summary['avgRiskScore'] == 70 / 3

    def test_summarize_empty(self):
        summary = FleetRiskScorer.summarize([])

        assert summary['totalWorkers'] == 0
        assert summary['avgRiskScore'] == 0
