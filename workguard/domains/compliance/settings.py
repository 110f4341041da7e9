"""
Compliance Engine Settings

Tunables for the risk windows, the continuity rule, the autonomy cut-off and
the business timezone, lifted out of the Flask config so the domain classes
work outside a request.
"""

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class ComplianceSettings:
    """Engine tunables; defaults match the base configuration."""
    lookback_days: int = 30
    streak_max_iterations: int = 10
    tenure_months: int = 3
    continuity_legal_limit_days: int = 2
    continuity_block_days: int = 7
    low_autonomy_threshold: int = 30
    minimum_worker_age: int = 18
    system_actor_id: str = "system"
    business_timezone: str = "America/Sao_Paulo"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ComplianceSettings":
        """Build settings from a Flask config mapping, falling back to defaults."""
        defaults = cls()
        return cls(
            lookback_days=config.get("RISK_LOOKBACK_DAYS", defaults.lookback_days),
            streak_max_iterations=config.get(
                "STREAK_MAX_ITERATIONS", defaults.streak_max_iterations
            ),
            tenure_months=config.get("TENURE_MONTHS", defaults.tenure_months),
            continuity_legal_limit_days=config.get(
                "CONTINUITY_LEGAL_LIMIT_DAYS", defaults.continuity_legal_limit_days
            ),
            continuity_block_days=config.get(
                "CONTINUITY_BLOCK_DAYS", defaults.continuity_block_days
            ),
            low_autonomy_threshold=config.get(
                "LOW_AUTONOMY_THRESHOLD", defaults.low_autonomy_threshold
            ),
            minimum_worker_age=config.get(
                "MINIMUM_WORKER_AGE", defaults.minimum_worker_age
            ),
            system_actor_id=config.get("SYSTEM_ACTOR_ID", defaults.system_actor_id),
            business_timezone=config.get(
                "BUSINESS_TIMEZONE", defaults.business_timezone
            ),
        )
