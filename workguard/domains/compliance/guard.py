"""
Allocation Guard - Enforcement Point for New Work Assignments

Consulted synchronously before an allocation row is written:

1. Compute the location-scoped risk for worker/client/location
2. Critical → reject with the numbers that triggered it, nothing written
3. High → allow, but surface a rotation advisory
4. Stamp the allocation with the risk snapshot (counting itself) and
   overwrite the worker's current risk snapshot

Allocations for the same (worker, client) pair are serialised in-process
through ALLOCATION_LOCKS so two requests cannot both pass the check on a
stale snapshot.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Union

from ...models import Allocation, AllocationStatus, RiskLevel, utcnow
from ...utils.exceptions import (
    AllocationRejectedError,
    BusinessLogicError,
    NotFoundError,
    ValidationError,
    WorkerBlockedError,
)
from ...utils.logger import get_logger, log_compliance_event
from .patterns import TemporalPatternAnalyzer
from .repository import ComplianceRepository
from .scorer import LocationRisk, LocationRiskScorer
from .thresholds import ALLOCATION_SCALE

logger = get_logger(__name__)


class KeyedLock:
    """One mutex per key, kept only while someone holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[Hashable, List[Any]] = {}

    def _acquire_entry(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


ALLOCATION_LOCKS = KeyedLock()


ALLOWED_STATUS_TRANSITIONS = {
    AllocationStatus.SCHEDULED: {AllocationStatus.IN_PROGRESS, AllocationStatus.CANCELLED},
    AllocationStatus.IN_PROGRESS: {AllocationStatus.COMPLETED, AllocationStatus.CANCELLED},
    AllocationStatus.COMPLETED: set(),
    AllocationStatus.CANCELLED: set(),
}


@dataclass
class AllocationResult:
    """Created allocation plus the risk that gated it."""
    allocation: Allocation
    risk: LocationRisk
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allocation': self.allocation.to_dict(),
            'risk': self.risk.to_dict(),
            'warning': self.warning,
        }


class AllocationGuard:
    """Gates allocation creation on the location-scoped risk formula."""

    def __init__(
        self,
        repository: ComplianceRepository,
        analyzer: TemporalPatternAnalyzer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.analyzer = analyzer
        self.clock = clock

    def calculate_worker_risk(
        self, worker_id: int, client_id: int, location_id: int
    ) -> LocationRisk:
        self.repository.require_worker(worker_id)
        pattern = self.analyzer.location_pattern(worker_id, client_id, location_id)
        return LocationRiskScorer.compute_score(pattern)

    def create_allocation(
        self,
        worker_id: int,
        client_id: int,
        location_id: int,
        work_date: date,
        job_function: Optional[str] = None,
        daily_rate: Optional[Decimal] = None,
    ) -> AllocationResult:
        """
        Create an allocation if the worker's risk allows it.

        Raises:
            NotFoundError: Unknown worker or location
            ValidationError: Location does not belong to the client
            WorkerBlockedError: Worker is currently blocked
            AllocationRejectedError: Risk level is critical
        """
        worker = self.repository.require_worker(worker_id)
        location = self.repository.get_location(location_id)
        if location is None:
            raise NotFoundError("Work location", details={'locationId': location_id})
        if location.client_id != client_id:
            raise ValidationError(
                "Work location does not belong to the client", field="locationId"
            )
        if worker.is_blocked:
            raise WorkerBlockedError(worker.id, worker.block_reason)

        risk = self.calculate_worker_risk(worker_id, client_id, location_id)

        if risk.level == RiskLevel.CRITICAL:
            logger.warning(
                "Allocation rejected: critical labor risk",
                extra={
                    'worker_id': worker_id,
                    'client_id': client_id,
                    'risk_score': risk.score,
                    'consecutive_days': risk.consecutive_days,
                    'days_in_month': risk.days_in_month,
                },
            )
            raise AllocationRejectedError(
                score=risk.score,
                consecutive_days=risk.consecutive_days,
                days_in_month=risk.days_in_month,
                months_with_client=risk.months_with_client,
            )

        warning = None
        if risk.level == RiskLevel.HIGH:
            action = ALLOCATION_SCALE.threshold_for(RiskLevel.HIGH).action_required
            warning = (
                f"Worker at high labor risk (score: {risk.score}, "
                f"{risk.consecutive_days} consecutive days). {action}."
            )
            logger.warning(
                "High-risk allocation allowed",
                extra={
                    'worker_id': worker_id,
                    'client_id': client_id,
                    'risk_score': risk.score,
                },
            )

        allocation = self.repository.add_allocation(
            Allocation(
                worker_id=worker_id,
                client_id=client_id,
                location_id=location_id,
                work_date=work_date,
                job_function=job_function,
                daily_rate=daily_rate if daily_rate is not None else worker.daily_rate,
                status=AllocationStatus.SCHEDULED,
                consecutive_days=risk.consecutive_days + 1,
                days_this_month=risk.days_in_month + 1,
                risk_flag=risk.is_flagged,
            )
        )

        worker.risk_score = risk.score
        worker.risk_level = risk.level
        worker.risk_updated_at = self.clock()

        log_compliance_event(
            'allocation_created',
            worker_id,
            allocation_id=allocation.id,
            client_id=client_id,
            risk_score=risk.score,
            risk_level=risk.level.value,
        )
        return AllocationResult(allocation=allocation, risk=risk, warning=warning)

    def update_allocation_status(
        self, allocation_id: int, status: Union[AllocationStatus, str]
    ) -> Allocation:
        """Move an allocation along its work lifecycle. Risk fields are untouched."""
        allocation = self.repository.get_allocation(allocation_id)
        if allocation is None:
            raise NotFoundError("Allocation", details={'allocationId': allocation_id})

        try:
            target = AllocationStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid allocation status: {status}", field="status") from None

        if target not in ALLOWED_STATUS_TRANSITIONS[allocation.status]:
            raise BusinessLogicError(
                f"Cannot move allocation from {allocation.status.value} to {target.value}",
                code="INVALID_TRANSITION",
            )

        allocation.status = target
        return allocation
