"""
Compliance Domain - Labor-Law Risk Engine

Flags work patterns that could get an autonomous contractor reclassified
as an employee, and enforces blocks that break those patterns.

Key Components:
- Temporal Pattern Analyzer: consecutive days, monthly days, client tenure
- Risk Scorers: location-scoped allocation gate and fleet-wide ranking
- Autonomy Tracker: refusals and client diversity as mitigating evidence
- Block Manager: manual, continuity and incident-driven blocks with a ledger
- Allocation Guard: rejects critical-risk allocations, warns on high risk
"""

from .service import ComplianceService
from .settings import ComplianceSettings
from .scorer import FleetRiskScorer, LocationRiskScorer
from .thresholds import ALLOCATION_SCALE, FLEET_SCALE

__all__ = [
    'ComplianceService',
    'ComplianceSettings',
    'FleetRiskScorer',
    'LocationRiskScorer',
    'ALLOCATION_SCALE',
    'FLEET_SCALE',
]
