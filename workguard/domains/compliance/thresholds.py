"""
Risk Thresholds and Interpretation Logic

Two independent level scales coexist and must never be mixed:

- ALLOCATION_SCALE grades the unbounded location-scoped score used to gate
  allocation creation (<=50 low, <=100 medium, <=150 high, >150 critical).
- FLEET_SCALE grades the 0-100 composite used to rank the whole workforce
  (>=70 critical, >=50 high, >=30 medium, else low).

Each band carries the operator guidance shown next to the level.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...models import RiskLevel


@dataclass(frozen=True)
class RiskThreshold:
    """A score band with its level and guidance."""
    level: RiskLevel
    min_score: int
    max_score: Optional[int]  # None means unbounded
    description: str
    action_required: str

    @property
    def score_range(self) -> str:
        """Human-readable score range."""
        if self.max_score is None:
            return f"{self.min_score}+"
        return f"{self.min_score}-{self.max_score}"

    def contains_score(self, score: int) -> bool:
        if score < self.min_score:
            return False
        return self.max_score is None or score <= self.max_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level.value,
            'scoreRange': self.score_range,
            'description': self.description,
            'actionRequired': self.action_required,
        }


class RiskScale:
    """An ordered, contiguous set of thresholds starting at zero."""

    def __init__(self, name: str, thresholds: List[RiskThreshold]):
        self.name = name
        self.thresholds = thresholds

    def classify(self, score: int) -> RiskThreshold:
        """
        Find the band containing a score.

        Raises:
            ValueError: If the score is negative or above a bounded scale
        """
        for threshold in self.thresholds:
            if threshold.contains_score(score):
                return threshold
        raise ValueError(f"Score {score} is outside the {self.name} scale")

    def level_for(self, score: int) -> RiskLevel:
        return self.classify(score).level

    def threshold_for(self, level: RiskLevel) -> RiskThreshold:
        for threshold in self.thresholds:
            if threshold.level == level:
                return threshold
        raise ValueError(f"No threshold defined for level {level}")


ALLOCATION_SCALE = RiskScale(
    "allocation",
    [
        RiskThreshold(
            level=RiskLevel.LOW,
            min_score=0,
            max_score=50,
            description="Sporadic work at this client",
            action_required="Allocate normally",
        ),
        RiskThreshold(
            level=RiskLevel.MEDIUM,
            min_score=51,
            max_score=100,
            description="Recurring presence at this client",
            action_required="Prefer other workers for upcoming days",
        ),
        RiskThreshold(
            level=RiskLevel.HIGH,
            min_score=101,
            max_score=150,
            description="Habitual presence that resembles an employment relationship",
            action_required="Rotate to a different worker",
        ),
        RiskThreshold(
            level=RiskLevel.CRITICAL,
            min_score=151,
            max_score=None,
            description="Continuity and subordination indicators present",
            action_required="Allocation refused until the pattern is broken",
        ),
    ],
)


FLEET_SCALE = RiskScale(
    "fleet",
    [
        RiskThreshold(
            level=RiskLevel.LOW,
            min_score=0,
            max_score=29,
            description="Autonomous contractor profile",
            action_required="No action",
        ),
        RiskThreshold(
            level=RiskLevel.MEDIUM,
            min_score=30,
            max_score=49,
            description="Some dependence on a single client",
            action_required="Review allocations weekly",
        ),
        RiskThreshold(
            level=RiskLevel.HIGH,
            min_score=50,
            max_score=69,
            description="Work pattern close to an employee's",
            action_required="Diversify clients and register refusals",
        ),
        RiskThreshold(
            level=RiskLevel.CRITICAL,
            min_score=70,
            max_score=100,
            description="Likely to be reclassified as an employee",
            action_required="Stop allocations at the dominant client",
        ),
    ],
)
