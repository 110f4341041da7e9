"""
Explainable Labor-Risk Scoring Models

Two scorers with two different purposes and scales:

LocationRiskScorer (allocation gating, unbounded):
    score = consecutive_days × 10 + days_in_month × 5 + months_with_client × 20

FleetRiskScorer (workforce ranking, capped at 100), additive factors:
    consecutive days   >=3 → 40, 2 → 25, 1 → 10
    days worked (30d)  >=20 → 20, >=15 → 15, >=10 → 10
    autonomy score     <30 → 30, <50 → 15
    currently blocked  10

Every result carries its factor breakdown so operators can see which
pattern produced the score.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...models import RiskLevel, Worker
from .patterns import LocationPattern, longest_run_by_client
from .repository import WorkRecord
from .thresholds import ALLOCATION_SCALE, FLEET_SCALE

CENTS = Decimal('0.01')


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _bracket(value: int, brackets: Sequence[Tuple[int, int]]) -> int:
    """Points of the first (minimum, points) bracket the value reaches."""
    for minimum, points in brackets:
        if value >= minimum:
            return points
    return 0


@dataclass
class LocationRisk:
    """Result of the location-scoped formula."""
    score: int
    level: RiskLevel
    consecutive_days: int
    days_in_month: int
    months_with_client: int

    @property
    def is_flagged(self) -> bool:
        return self.level in (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'level': self.level.value,
            'consecutiveDays': self.consecutive_days,
            'daysInMonth': self.days_in_month,
            'monthsCount': self.months_with_client,
        }


class LocationRiskScorer:
    """Location-scoped risk formula used when creating allocations."""

    WEIGHTS = {
        'consecutive_days': 10,
        'days_in_month': 5,
        'months_with_client': 20,
    }

    @staticmethod
    def compute_score(pattern: LocationPattern) -> LocationRisk:
        weights = LocationRiskScorer.WEIGHTS
        score = (
            pattern.consecutive_days * weights['consecutive_days']
            + pattern.days_in_month * weights['days_in_month']
            + pattern.months_with_client * weights['months_with_client']
        )
        return LocationRisk(
            score=score,
            level=ALLOCATION_SCALE.level_for(score),
            consecutive_days=pattern.consecutive_days,
            days_in_month=pattern.days_in_month,
            months_with_client=pattern.months_with_client,
        )


@dataclass
class WorkerRiskAssessment:
    """Fleet-wide risk assessment of one worker. Computed on demand, never stored."""
    worker_id: int
    worker_name: str
    worker_cpf: str
    max_consecutive_days: int
    total_days_worked: int
    avg_daily_rate: Decimal
    financial_exposure: Decimal
    autonomy_score: int
    risk_score: int
    risk_level: RiskLevel
    is_blocked: bool
    block_reason: Optional[str]
    clients_with_consecutive_days: int
    breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workerId': self.worker_id,
            'workerName': self.worker_name,
            'workerCpf': self.worker_cpf,
            'maxConsecutiveDays': self.max_consecutive_days,
            'totalDaysWorked': self.total_days_worked,
            'avgDailyRate': float(self.avg_daily_rate),
            'financialExposure': float(self.financial_exposure),
            'autonomyScore': self.autonomy_score,
            'riskScore': self.risk_score,
            'riskLevel': self.risk_level.value,
            'isBlocked': self.is_blocked,
            'blockReason': self.block_reason,
            'clientsWithConsecutiveDays': self.clients_with_consecutive_days,
            'breakdown': self.breakdown,
        }


class FleetRiskScorer:
    """
    Composite 0-100 risk score for ranking the whole workforce.

    Works over completed operation memberships from the lookback window,
    grouped per client so a streak never spans two clients.
    """

    MAX_SCORE = 100

    CONSECUTIVE_DAYS_POINTS = ((3, 40), (2, 25), (1, 10))
    DAYS_WORKED_POINTS = ((20, 20), (15, 15), (10, 10))
    LOW_AUTONOMY_POINTS = ((30, 30), (50, 15))  # (exclusive upper bound, points)
    BLOCKED_POINTS = 10

    @staticmethod
    def autonomy_points(autonomy_score: int) -> int:
        for upper_bound, points in FleetRiskScorer.LOW_AUTONOMY_POINTS:
            if autonomy_score < upper_bound:
                return points
        return 0

    @staticmethod
    def compute_score(
        max_consecutive_days: int,
        total_days_worked: int,
        autonomy_score: int,
        is_blocked: bool,
    ) -> Tuple[int, Dict[str, int]]:
        """
        Add up the factor points.

        Returns:
            (score capped at 100, per-factor points)
        """
        breakdown = {
            'consecutiveDays': _bracket(
                max_consecutive_days, FleetRiskScorer.CONSECUTIVE_DAYS_POINTS
            ),
            'daysWorked': _bracket(total_days_worked, FleetRiskScorer.DAYS_WORKED_POINTS),
            'lowAutonomy': FleetRiskScorer.autonomy_points(autonomy_score),
            'blocked': FleetRiskScorer.BLOCKED_POINTS if is_blocked else 0,
        }
        score = min(sum(breakdown.values()), FleetRiskScorer.MAX_SCORE)
        return score, breakdown

    @staticmethod
    def assess_worker(
        worker: Worker, records: List[WorkRecord], autonomy_score: int
    ) -> WorkerRiskAssessment:
        runs = longest_run_by_client(records)
        max_consecutive = max(runs.values(), default=0)
        total_days = len(records)

        if records:
            rates = [record.daily_rate or Decimal('0') for record in records]
            avg_rate = sum(rates, Decimal('0')) / len(rates)
        else:
            avg_rate = Decimal('0')

        score, breakdown = FleetRiskScorer.compute_score(
            max_consecutive, total_days, autonomy_score, worker.is_blocked
        )

        return WorkerRiskAssessment(
            worker_id=worker.id,
            worker_name=worker.full_name,
            worker_cpf=worker.cpf,
            max_consecutive_days=max_consecutive,
            total_days_worked=total_days,
            avg_daily_rate=_round_money(avg_rate),
            financial_exposure=_round_money(max_consecutive * avg_rate),
            autonomy_score=autonomy_score,
            risk_score=score,
            risk_level=FLEET_SCALE.level_for(score),
            is_blocked=worker.is_blocked,
            block_reason=worker.block_reason,
            clients_with_consecutive_days=len(runs),
            breakdown=breakdown,
        )

    @staticmethod
    def summarize(assessments: List[WorkerRiskAssessment]) -> Dict[str, Any]:
        """Counts per level, total exposure, mean score and blocked count."""
        def count(level: RiskLevel) -> int:
            return sum(1 for a in assessments if a.risk_level == level)

        total_exposure = sum(
            (a.financial_exposure for a in assessments), Decimal('0')
        )
        avg_score = (
            sum(a.risk_score for a in assessments) / len(assessments)
            if assessments else 0
        )
        return {
            'totalWorkers': len(assessments),
            'criticalRisk': count(RiskLevel.CRITICAL),
            'highRisk': count(RiskLevel.HIGH),
            'mediumRisk': count(RiskLevel.MEDIUM),
            'lowRisk': count(RiskLevel.LOW),
            'totalFinancialExposure': float(_round_money(total_exposure)),
            'avgRiskScore': avg_score,
            'workersBlocked': sum(1 for a in assessments if a.is_blocked),
        }
