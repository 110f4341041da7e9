"""
Operation Lifecycle

Operations group workers for one client, location and date. Membership moves
invited → accepted → present → completed; completed and present memberships
are the work records the compliance engine reads. Every change to a worker's
memberships rebuilds their autonomy metrics.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from ...models import (
    IncidentSeverity,
    IncidentType,
    MemberStatus,
    Operation,
    OperationIncident,
    OperationMember,
    OperationStatus,
    WorkLocation,
)
from ...utils.exceptions import (
    BusinessLogicError,
    NotFoundError,
    ValidationError,
    WorkerBlockedError,
)
from ...utils.logger import get_logger, log_compliance_event
from ..compliance.service import ComplianceService
from .registration import normalize_cpf

logger = get_logger(__name__)


class OperationService:
    """Operation creation, acceptance, attendance and incidents."""

    def __init__(self, compliance: ComplianceService):
        self.compliance = compliance
        self.session = compliance.session
        self.repository = compliance.repository
        self.clock = compliance.clock

    def _require_operation(self, operation_id: int) -> Operation:
        operation = self.session.get(Operation, operation_id)
        if operation is None:
            raise NotFoundError("Operation", details={'operationId': operation_id})
        return operation

    def _require_member(self, member_id: int) -> OperationMember:
        member = self.session.get(OperationMember, member_id)
        if member is None:
            raise NotFoundError("Operation member", details={'memberId': member_id})
        return member

    def _transition(
        self, member: OperationMember, expected: MemberStatus, target: MemberStatus
    ) -> None:
        if member.status != expected:
            raise BusinessLogicError(
                f"Member must be {expected.value} to become {target.value} "
                f"(current: {member.status.value})",
                code="INVALID_TRANSITION",
            )
        member.status = target

    def create_operation(
        self,
        client_id: int,
        location_id: int,
        operation_name: str,
        work_date: date,
        created_by: str,
        members: Optional[List[Dict[str, Any]]] = None,
    ) -> Operation:
        """
        Create an operation with invited members.

        Each member entry holds worker_id and optionally job_function and daily_rate.

        Raises:
            NotFoundError: Unknown location or worker
            ValidationError: Location outside the client or duplicated worker
            WorkerBlockedError: A member is currently blocked
        """
        location = self.session.get(WorkLocation, location_id)
        if location is None:
            raise NotFoundError("Work location", details={'locationId': location_id})
        if location.client_id != client_id:
            raise ValidationError(
                "Work location does not belong to the client", field="locationId"
            )

        members = members or []
        worker_ids = [entry['worker_id'] for entry in members]
        if len(set(worker_ids)) != len(worker_ids):
            raise ValidationError("A worker can only be invited once", field="members")

        operation = Operation(
            client_id=client_id,
            location_id=location_id,
            operation_name=operation_name,
            work_date=work_date,
            status=OperationStatus.CREATED,
            created_by=created_by,
        )
        self.session.add(operation)
        self.session.flush()

        for entry in members:
            worker = self.repository.require_worker(entry['worker_id'])
            if worker.is_blocked:
                raise WorkerBlockedError(worker.id, worker.block_reason)
            rate = entry.get('daily_rate')
            operation.members.append(
                OperationMember(
                    worker_id=worker.id,
                    job_function=entry.get('job_function'),
                    daily_rate=Decimal(str(rate)) if rate is not None else worker.daily_rate,
                    status=MemberStatus.INVITED,
                )
            )
        self.session.flush()

        logger.info(
            "Operation created",
            extra={'operation_id': operation.id, 'client_id': client_id, 'members': len(members)},
        )
        return operation

    def accept_operation(self, member_id: int, cpf: str) -> OperationMember:
        """
        Accept an invitation, confirming identity by CPF.

        Raises:
            ValidationError: The CPF does not match the invited worker
        """
        member = self._require_member(member_id)
        worker = self.repository.require_worker(member.worker_id)

        if normalize_cpf(cpf) != normalize_cpf(worker.cpf):
            raise ValidationError("CPF does not match the invited worker", field="cpf")

        self._transition(member, MemberStatus.INVITED, MemberStatus.ACCEPTED)
        member.accepted_at = self.clock()
        member.cpf_confirmed = True
        return member

    def start_operation(self, operation_id: int) -> Operation:
        operation = self._require_operation(operation_id)
        if operation.status != OperationStatus.CREATED:
            raise BusinessLogicError(
                f"Operation is {operation.status.value}", code="INVALID_TRANSITION"
            )
        operation.status = OperationStatus.IN_PROGRESS
        return operation

    def check_in(self, member_id: int) -> OperationMember:
        member = self._require_member(member_id)
        self._transition(member, MemberStatus.ACCEPTED, MemberStatus.PRESENT)
        member.check_in_at = self.clock()
        self.compliance.update_worker_autonomy_metrics(member.worker_id)
        return member

    def check_out(self, member_id: int) -> OperationMember:
        member = self._require_member(member_id)
        self._transition(member, MemberStatus.PRESENT, MemberStatus.COMPLETED)
        member.check_out_at = self.clock()
        self.compliance.update_worker_autonomy_metrics(member.worker_id)
        return member

    def complete_operation(self, operation_id: int) -> Operation:
        """Close an operation; members still present are checked out."""
        operation = self._require_operation(operation_id)
        if operation.status in (OperationStatus.COMPLETED, OperationStatus.CANCELLED):
            raise BusinessLogicError(
                f"Operation is already {operation.status.value}", code="INVALID_TRANSITION"
            )

        now = self.clock()
        operation.status = OperationStatus.COMPLETED
        for member in operation.members:
            if member.status == MemberStatus.PRESENT:
                member.status = MemberStatus.COMPLETED
                member.check_out_at = now
        self.session.flush()

        for worker_id in sorted({member.worker_id for member in operation.members}):
            self.compliance.update_worker_autonomy_metrics(worker_id)
        return operation

    def register_incident(
        self,
        operation_id: int,
        incident_type: Union[IncidentType, str],
        description: str,
        reported_by: str,
        worker_id: Optional[int] = None,
        severity: Union[IncidentSeverity, str] = IncidentSeverity.MEDIUM,
    ) -> Tuple[OperationIncident, Dict[str, Any]]:
        """
        Record an incident and apply the automatic block rule for its type.

        Returns:
            (incident, block result from the block manager)
        """
        operation = self._require_operation(operation_id)
        try:
            incident_type = IncidentType(incident_type)
            severity = IncidentSeverity(severity)
        except ValueError as e:
            raise ValidationError(str(e), field="incidentType") from None

        if worker_id is not None:
            self.repository.require_worker(worker_id)

        incident = OperationIncident(
            operation_id=operation.id,
            worker_id=worker_id,
            incident_type=incident_type,
            description=description,
            severity=severity,
            reported_by=reported_by,
        )
        self.session.add(incident)
        self.session.flush()

        block_result: Dict[str, Any] = {'blocked': False}
        if worker_id is not None:
            if incident_type == IncidentType.ABSENCE:
                member = next(
                    (m for m in operation.members if m.worker_id == worker_id), None
                )
                if member is not None and member.status in (
                    MemberStatus.INVITED, MemberStatus.ACCEPTED
                ):
                    member.status = MemberStatus.ABSENT
            block_result = self.compliance.auto_block_based_on_incident(
                worker_id, incident_type, reported_by
            )

        log_compliance_event(
            'incident_registered',
            worker_id,
            incident_id=incident.id,
            incident_type=incident_type.value,
            blocked=block_result['blocked'],
        )
        return incident, block_result
