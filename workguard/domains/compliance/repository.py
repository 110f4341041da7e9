"""Compliance store operations over a SQLAlchemy session."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from ...models import (
    Allocation,
    AllocationStatus,
    BlockType,
    MemberStatus,
    Operation,
    OperationMember,
    RegistrationStatus,
    Worker,
    WorkerAutonomyMetrics,
    WorkerBlockHistory,
    WorkerRefusal,
    WorkerStatus,
    WorkLocation,
)
from ...utils.exceptions import NotFoundError


@dataclass(frozen=True)
class WorkRecord:
    """One day of work for a worker, whatever table it came from."""
    work_date: date
    client_id: int
    location_id: int
    daily_rate: Optional[Decimal]
    status: str
    operation_id: Optional[int] = None


class ComplianceRepository:
    """Reads and writes the tables the compliance engine depends on."""

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # Workers

    def get_worker(self, worker_id: int) -> Optional[Worker]:
        return self._session.get(Worker, worker_id)

    def require_worker(self, worker_id: int) -> Worker:
        worker = self.get_worker(worker_id)
        if worker is None:
            raise NotFoundError("Worker", details={"workerId": worker_id})
        return worker

    def list_active_workers(self) -> List[Worker]:
        stmt = (
            select(Worker)
            .where(Worker.status != WorkerStatus.INACTIVE)
            .where(Worker.registration_status == RegistrationStatus.APPROVED)
            .order_by(Worker.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_blocked_workers(self) -> List[Worker]:
        stmt = (
            select(Worker)
            .where(Worker.is_blocked.is_(True))
            .order_by(Worker.blocked_at.desc(), Worker.id.desc())
        )
        return list(self._session.execute(stmt).scalars().all())

    def find_expired_temporary_blocks(self, now: datetime) -> List[Worker]:
        stmt = select(Worker).where(
            and_(
                Worker.is_blocked.is_(True),
                Worker.block_type == BlockType.TEMPORARY,
                Worker.block_expires_at < now,
            )
        )
        return list(self._session.execute(stmt).scalars().all())

    def count_workers_by_block_type(self) -> Dict[str, int]:
        """Counts over approved workers: total, blocked, temporary and permanent."""
        approved = Worker.registration_status == RegistrationStatus.APPROVED
        total = self._session.execute(
            select(func.count(Worker.id)).where(approved)
        ).scalar() or 0
        rows = self._session.execute(
            select(Worker.block_type, func.count(Worker.id))
            .where(approved, Worker.is_blocked.is_(True))
            .group_by(Worker.block_type)
        ).all()
        by_type = {block_type: count for block_type, count in rows}
        temporary = by_type.get(BlockType.TEMPORARY, 0)
        permanent = by_type.get(BlockType.PERMANENT, 0)
        return {
            'total': total,
            'blocked': sum(by_type.values()),
            'temporary': temporary,
            'permanent': permanent,
        }

    def count_workers_by_risk_level(self) -> Dict[str, int]:
        rows = self._session.execute(
            select(Worker.risk_level, func.count(Worker.id))
            .where(Worker.registration_status == RegistrationStatus.APPROVED)
            .group_by(Worker.risk_level)
        ).all()
        return {level.value: count for level, count in rows if level is not None}

    # Work records

    def find_allocation_records(
        self,
        worker_id: int,
        client_id: Optional[int] = None,
        location_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[WorkRecord]:
        """Non-cancelled allocations, most recent first."""
        stmt = select(Allocation).where(
            Allocation.worker_id == worker_id,
            Allocation.status != AllocationStatus.CANCELLED,
        )
        if client_id is not None:
            stmt = stmt.where(Allocation.client_id == client_id)
        if location_id is not None:
            stmt = stmt.where(Allocation.location_id == location_id)
        if start is not None:
            stmt = stmt.where(Allocation.work_date >= start)
        if end is not None:
            stmt = stmt.where(Allocation.work_date <= end)
        stmt = stmt.order_by(Allocation.work_date.desc(), Allocation.id.desc())

        return [
            WorkRecord(
                work_date=allocation.work_date,
                client_id=allocation.client_id,
                location_id=allocation.location_id,
                daily_rate=allocation.daily_rate,
                status=allocation.status.value,
            )
            for allocation in self._session.execute(stmt).scalars().all()
        ]

    def find_membership_records(
        self,
        worker_id: int,
        client_id: Optional[int] = None,
        start: Optional[date] = None,
        statuses: Optional[Iterable[MemberStatus]] = None,
    ) -> List[WorkRecord]:
        """Operation memberships joined to their operation, most recent first."""
        stmt = (
            select(OperationMember, Operation)
            .join(Operation, OperationMember.operation_id == Operation.id)
            .where(OperationMember.worker_id == worker_id)
        )
        if client_id is not None:
            stmt = stmt.where(Operation.client_id == client_id)
        if start is not None:
            stmt = stmt.where(Operation.work_date >= start)
        if statuses is not None:
            stmt = stmt.where(OperationMember.status.in_(list(statuses)))
        stmt = stmt.order_by(Operation.work_date.desc(), OperationMember.id.desc())

        return [
            WorkRecord(
                work_date=operation.work_date,
                client_id=operation.client_id,
                location_id=operation.location_id,
                daily_rate=member.daily_rate,
                status=member.status.value,
                operation_id=operation.id,
            )
            for member, operation in self._session.execute(stmt).all()
        ]

    def find_operation_memberships(self, worker_id: int) -> List[WorkRecord]:
        return self.find_membership_records(worker_id)

    def get_location(self, location_id: int) -> Optional[WorkLocation]:
        return self._session.get(WorkLocation, location_id)

    def get_allocation(self, allocation_id: int) -> Optional[Allocation]:
        return self._session.get(Allocation, allocation_id)

    def list_allocations(
        self,
        worker_id: Optional[int] = None,
        client_id: Optional[int] = None,
        location_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[AllocationStatus] = None,
    ) -> List[Allocation]:
        """Allocation rows matching every given filter, latest work date first."""
        stmt = select(Allocation)
        if worker_id is not None:
            stmt = stmt.where(Allocation.worker_id == worker_id)
        if client_id is not None:
            stmt = stmt.where(Allocation.client_id == client_id)
        if location_id is not None:
            stmt = stmt.where(Allocation.location_id == location_id)
        if start is not None:
            stmt = stmt.where(Allocation.work_date >= start)
        if end is not None:
            stmt = stmt.where(Allocation.work_date <= end)
        if status is not None:
            stmt = stmt.where(Allocation.status == status)
        stmt = stmt.order_by(Allocation.work_date.desc(), Allocation.id.desc())
        return list(self._session.execute(stmt).scalars())

    def add_allocation(self, allocation: Allocation) -> Allocation:
        self._session.add(allocation)
        self._session.flush()
        return allocation

    # Refusals

    def count_refusals(self, worker_id: int) -> int:
        return self._session.execute(
            select(func.count(WorkerRefusal.id)).where(WorkerRefusal.worker_id == worker_id)
        ).scalar() or 0

    def list_refusals(self, worker_id: int) -> List[WorkerRefusal]:
        stmt = (
            select(WorkerRefusal)
            .where(WorkerRefusal.worker_id == worker_id)
            .order_by(WorkerRefusal.refusal_date.desc(), WorkerRefusal.id.desc())
        )
        return list(self._session.execute(stmt).scalars().all())

    def insert_refusal(self, refusal: WorkerRefusal) -> WorkerRefusal:
        self._session.add(refusal)
        self._session.flush()
        return refusal

    # Block ledger

    def insert_block_ledger_entry(self, entry: WorkerBlockHistory) -> WorkerBlockHistory:
        self._session.add(entry)
        self._session.flush()
        return entry

    def list_block_ledger(self, worker_id: int) -> List[WorkerBlockHistory]:
        stmt = (
            select(WorkerBlockHistory)
            .where(WorkerBlockHistory.worker_id == worker_id)
            .order_by(WorkerBlockHistory.created_at.desc(), WorkerBlockHistory.id.desc())
        )
        return list(self._session.execute(stmt).scalars().all())

    # Autonomy metrics

    def get_autonomy_metrics(self, worker_id: int) -> Optional[WorkerAutonomyMetrics]:
        stmt = select(WorkerAutonomyMetrics).where(
            WorkerAutonomyMetrics.worker_id == worker_id
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def upsert_autonomy_metrics(
        self, worker_id: int, fields: Dict[str, Any]
    ) -> WorkerAutonomyMetrics:
        metrics = self.get_autonomy_metrics(worker_id)
        if metrics is None:
            metrics = WorkerAutonomyMetrics(worker_id=worker_id)
            self._session.add(metrics)
        for name, value in fields.items():
            setattr(metrics, name, value)
        self._session.flush()
        return metrics

    def list_autonomy_metrics_below(self, threshold: int) -> List[tuple]:
        """(metrics, worker) pairs under the threshold, lowest score first."""
        stmt = (
            select(WorkerAutonomyMetrics, Worker)
            .join(Worker, WorkerAutonomyMetrics.worker_id == Worker.id)
            .where(WorkerAutonomyMetrics.autonomy_score < threshold)
            .order_by(WorkerAutonomyMetrics.autonomy_score.asc(), Worker.id.asc())
        )
        return [tuple(row) for row in self._session.execute(stmt).all()]

    def autonomy_scores_for(self, worker_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(worker_ids)
        if not ids:
            return {}
        stmt = select(
            WorkerAutonomyMetrics.worker_id, WorkerAutonomyMetrics.autonomy_score
        ).where(WorkerAutonomyMetrics.worker_id.in_(ids))
        return {worker_id: score for worker_id, score in self._session.execute(stmt).all()}
