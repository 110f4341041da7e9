"""
Compliance Service - Public Surface of the Risk & Compliance Engine

Wires the pattern analyzer, scorers, autonomy tracker, block manager and
allocation guard over one session and exposes every engine operation.

Methods flush but do not commit, except create_allocation, which commits
while holding the (worker, client) lock.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ...models import (
    Allocation,
    AllocationStatus,
    BlockType,
    IncidentType,
    RefusalType,
    RiskLevel,
    Worker,
    WorkerAutonomyMetrics,
    WorkerBlockHistory,
    WorkerRefusal,
    utcnow,
)
from ...utils.exceptions import ValidationError
from .autonomy import AutonomyTracker
from .blocking import BlockManager
from .guard import ALLOCATION_LOCKS, AllocationGuard, AllocationResult
from .patterns import TemporalPatternAnalyzer
from .repository import ComplianceRepository
from .scorer import (
    FleetRiskScorer,
    LocationRisk,
    LocationRiskScorer,
    WorkerRiskAssessment,
)
from .settings import ComplianceSettings


class ComplianceService:
    """Facade over the compliance engine components."""

    def __init__(
        self,
        session: Session,
        settings: Optional[ComplianceSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.settings = settings or ComplianceSettings()
        self.clock = clock

        self.repository = ComplianceRepository(session)
        self.analyzer = TemporalPatternAnalyzer(self.repository, self.settings, clock)
        self.autonomy = AutonomyTracker(self.repository, self.settings, clock)
        self.blocks = BlockManager(self.repository, self.analyzer, self.settings, clock)
        self.guard = AllocationGuard(self.repository, self.analyzer, clock)

    # Temporal patterns and location-scoped risk

    def calculate_consecutive_days(self, worker_id: int, client_id: int) -> int:
        self.repository.require_worker(worker_id)
        return self.analyzer.calculate_consecutive_days(worker_id, client_id)

    def calculate_worker_risk(
        self, worker_id: int, client_id: int, location_id: int
    ) -> LocationRisk:
        return self.guard.calculate_worker_risk(worker_id, client_id, location_id)

    # Allocation guard

    def create_allocation(
        self,
        worker_id: int,
        client_id: int,
        location_id: int,
        work_date: date,
        job_function: Optional[str] = None,
        daily_rate: Optional[Decimal] = None,
    ) -> AllocationResult:
        """Guarded allocation creation, serialised per (worker, client)."""
        with ALLOCATION_LOCKS.hold((worker_id, client_id)):
            try:
                result = self.guard.create_allocation(
                    worker_id,
                    client_id,
                    location_id,
                    work_date,
                    job_function=job_function,
                    daily_rate=daily_rate,
                )
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        return result

    def update_allocation_status(
        self, allocation_id: int, status: Union[AllocationStatus, str]
    ) -> Allocation:
        return self.guard.update_allocation_status(allocation_id, status)

    def list_allocations(
        self,
        worker_id: Optional[int] = None,
        client_id: Optional[int] = None,
        location_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[Union[AllocationStatus, str]] = None,
    ) -> List[Allocation]:
        if status is not None:
            try:
                status = AllocationStatus(status)
            except ValueError:
                raise ValidationError(
                    f"Invalid allocation status: {status}", field="status"
                ) from None
        return self.repository.list_allocations(
            worker_id=worker_id,
            client_id=client_id,
            location_id=location_id,
            start=start_date,
            end=end_date,
            status=status,
        )

    # Fleet-wide risk

    def calculate_worker_risks(self) -> List[WorkerRiskAssessment]:
        """Composite risk for every active worker, highest score first."""
        workers = self.repository.list_active_workers()
        autonomy_scores = self.repository.autonomy_scores_for(w.id for w in workers)

        assessments = [
            FleetRiskScorer.assess_worker(
                worker,
                self.analyzer.completed_records(worker.id),
                autonomy_scores.get(worker.id, 0),
            )
            for worker in workers
        ]
        assessments.sort(key=lambda a: a.risk_score, reverse=True)
        return assessments

    def get_risk_statistics(self) -> Dict[str, Any]:
        return FleetRiskScorer.summarize(self.calculate_worker_risks())

    def get_risk_dashboard(self) -> Dict[str, Any]:
        """Counts of approved workers by their persisted risk snapshot."""
        counts = self.repository.count_workers_by_risk_level()
        by_level = {level.value: counts.get(level.value, 0) for level in RiskLevel}
        return {'totalWorkers': sum(by_level.values()), **by_level}

    def suggest_workers(
        self, client_id: int, location_id: int, quantity: int
    ) -> List[Dict[str, Any]]:
        """Available workers with the lowest location-scoped risk first."""
        candidates = []
        for worker in self.repository.list_active_workers():
            if worker.is_blocked:
                continue
            risk = LocationRiskScorer.compute_score(
                self.analyzer.location_pattern(worker.id, client_id, location_id)
            )
            candidates.append((risk.score, worker.id, worker, risk))

        candidates.sort(key=lambda item: (item[0], item[1]))
        return [
            {
                'workerId': worker.id,
                'workerName': worker.full_name,
                'workerType': worker.worker_type.value,
                'dailyRate': float(worker.daily_rate) if worker.daily_rate is not None else None,
                'risk': risk.to_dict(),
            }
            for _, _, worker, risk in candidates[: max(quantity, 0) * 2]
        ]

    # Blocks

    def block_worker(
        self,
        worker_id: int,
        reason: str,
        actor_id: str,
        block_type: Union[BlockType, str] = BlockType.TEMPORARY,
        days_blocked: Optional[int] = None,
    ) -> Worker:
        return self.blocks.block_worker(worker_id, reason, actor_id, block_type, days_blocked)

    def unblock_worker(self, worker_id: int, reason: str, actor_id: str) -> Worker:
        return self.blocks.unblock_worker(worker_id, reason, actor_id)

    def check_and_unblock_expired_blocks(self) -> Dict[str, int]:
        return self.blocks.check_and_unblock_expired_blocks()

    def check_and_block_by_continuity(
        self, worker_id: int, client_id: int, actor_id: str
    ) -> Dict[str, Any]:
        return self.blocks.check_and_block_by_continuity(worker_id, client_id, actor_id)

    def auto_block_based_on_incident(
        self, worker_id: int, incident_type: Union[IncidentType, str], actor_id: str
    ) -> Dict[str, Any]:
        return self.blocks.auto_block_based_on_incident(worker_id, incident_type, actor_id)

    def get_blocked_workers(self) -> List[Worker]:
        return self.blocks.get_blocked_workers()

    def get_worker_block_history(self, worker_id: int) -> List[WorkerBlockHistory]:
        return self.blocks.get_worker_block_history(worker_id)

    def get_compliance_metrics(self) -> Dict[str, Any]:
        return self.blocks.get_compliance_metrics()

    # Autonomy

    def create_worker_refusal(
        self,
        worker_id: int,
        refusal_reason: str,
        refusal_type: Union[RefusalType, str],
        registered_by: str,
        refusal_date: Optional[datetime] = None,
        operation_id: Optional[int] = None,
        client_id: Optional[int] = None,
        evidence: Optional[str] = None,
    ) -> WorkerRefusal:
        return self.autonomy.create_worker_refusal(
            worker_id,
            refusal_reason,
            refusal_type,
            registered_by,
            refusal_date=refusal_date,
            operation_id=operation_id,
            client_id=client_id,
            evidence=evidence,
        )

    def get_worker_refusals(self, worker_id: int) -> List[WorkerRefusal]:
        return self.autonomy.get_worker_refusals(worker_id)

    def update_worker_autonomy_metrics(self, worker_id: int) -> WorkerAutonomyMetrics:
        return self.autonomy.update_worker_autonomy_metrics(worker_id)

    def get_autonomy_metrics(self, worker_id: int) -> Optional[WorkerAutonomyMetrics]:
        return self.autonomy.get_autonomy_metrics(worker_id)

    def get_workers_with_low_autonomy(self) -> List[Dict[str, Any]]:
        return self.autonomy.get_workers_with_low_autonomy()
