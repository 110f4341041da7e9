"""
Autonomy Metrics Tracker

Keeps the per-worker evidence of contractor autonomy: refusals, client and
location diversity, and engagement volume. Metrics are always rebuilt from
the source tables, never incremented, so a recompute is idempotent and
retroactive corrections are picked up.

    autonomy_score = min(refusals × 10, 30) + min(clients × 10, 30)
                   + min(locations × 5, 20) + min(operations × 2, 20)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from ...models import RefusalType, WorkerAutonomyMetrics, WorkerRefusal, utcnow
from ...utils.exceptions import ValidationError
from ...utils.logger import log_compliance_event
from .repository import ComplianceRepository, WorkRecord
from .settings import ComplianceSettings


@dataclass(frozen=True)
class AutonomyComponent:
    points_per_unit: int
    cap: int

    def points(self, count: int) -> int:
        return min(count * self.points_per_unit, self.cap)


class AutonomyScorer:
    """Capped weighted sum over the autonomy counters."""

    MAX_SCORE = 100

    COMPONENTS = {
        'refusals': AutonomyComponent(points_per_unit=10, cap=30),
        'clients': AutonomyComponent(points_per_unit=10, cap=30),
        'locations': AutonomyComponent(points_per_unit=5, cap=20),
        'operations': AutonomyComponent(points_per_unit=2, cap=20),
    }

    @staticmethod
    def compute_score(
        total_refusals: int,
        unique_clients: int,
        unique_locations: int,
        total_operations: int,
    ) -> int:
        components = AutonomyScorer.COMPONENTS
        total = (
            components['refusals'].points(max(total_refusals, 0))
            + components['clients'].points(max(unique_clients, 0))
            + components['locations'].points(max(unique_locations, 0))
            + components['operations'].points(max(total_operations, 0))
        )
        return min(total, AutonomyScorer.MAX_SCORE)


def derive_metrics(total_refusals: int, memberships: List[WorkRecord]) -> Dict[str, Any]:
    """Metric columns from the refusal count and all-time memberships."""
    unique_clients = len({record.client_id for record in memberships})
    unique_locations = len({record.location_id for record in memberships})
    work_dates = [record.work_date for record in memberships]

    return {
        'total_refusals': total_refusals,
        'unique_clients': unique_clients,
        'unique_locations': unique_locations,
        'total_operations': len(memberships),
        'first_operation_date': min(work_dates) if work_dates else None,
        'last_operation_date': max(work_dates) if work_dates else None,
        'autonomy_score': AutonomyScorer.compute_score(
            total_refusals, unique_clients, unique_locations, len(memberships)
        ),
    }


class AutonomyTracker:
    """Recomputes and queries the stored autonomy metrics."""

    def __init__(
        self,
        repository: ComplianceRepository,
        settings: Optional[ComplianceSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.settings = settings or ComplianceSettings()
        self.clock = clock

    def update_worker_autonomy_metrics(self, worker_id: int) -> WorkerAutonomyMetrics:
        """Full recompute of a worker's metrics followed by an upsert."""
        self.repository.require_worker(worker_id)

        fields = derive_metrics(
            self.repository.count_refusals(worker_id),
            self.repository.find_operation_memberships(worker_id),
        )
        fields['last_calculated_at'] = self.clock()

        metrics = self.repository.upsert_autonomy_metrics(worker_id, fields)

        log_compliance_event(
            'autonomy_recalculated',
            worker_id,
            autonomy_score=metrics.autonomy_score,
            total_refusals=metrics.total_refusals,
            unique_clients=metrics.unique_clients,
        )
        return metrics

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
        """
        Record a declined assignment and rebuild the worker's metrics.

        Raises:
            NotFoundError: If the worker does not exist
            ValidationError: If the reason is empty or the category unknown
        """
        self.repository.require_worker(worker_id)
        if not refusal_reason or not refusal_reason.strip():
            raise ValidationError("Refusal reason is required", field="refusalReason")
        try:
            refusal_type = RefusalType(refusal_type)
        except ValueError:
            raise ValidationError(
                f"Invalid refusal type: {refusal_type}", field="refusalType"
            ) from None

        refusal = self.repository.insert_refusal(
            WorkerRefusal(
                worker_id=worker_id,
                operation_id=operation_id,
                client_id=client_id,
                refusal_reason=refusal_reason,
                refusal_type=refusal_type,
                refusal_date=refusal_date or self.clock(),
                evidence=evidence,
                registered_by=registered_by,
            )
        )
        log_compliance_event(
            'refusal_registered',
            worker_id,
            refusal_id=refusal.id,
            refusal_type=refusal_type.value,
        )

        self.update_worker_autonomy_metrics(worker_id)
        return refusal

    def get_worker_refusals(self, worker_id: int) -> List[WorkerRefusal]:
        self.repository.require_worker(worker_id)
        return self.repository.list_refusals(worker_id)

    def get_autonomy_metrics(self, worker_id: int) -> Optional[WorkerAutonomyMetrics]:
        self.repository.require_worker(worker_id)
        return self.repository.get_autonomy_metrics(worker_id)

    def get_workers_with_low_autonomy(self) -> List[Dict[str, Any]]:
        """Workers scoring under the threshold, most concerning first."""
        rows = self.repository.list_autonomy_metrics_below(
            self.settings.low_autonomy_threshold
        )
        return [
            {
                **metrics.to_dict(),
                'workerName': worker.full_name,
                'workerCpf': worker.cpf,
                'isBlocked': worker.is_blocked,
            }
            for metrics, worker in rows
        ]
