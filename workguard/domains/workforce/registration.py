"""
Worker Registration

Registration, approval and rejection of workers. Validation happens before
anything is written.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...models import (
    RegistrationStatus,
    Worker,
    WorkerStatus,
    WorkerType,
    utcnow,
)
from ...utils.exceptions import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from ...utils.logger import log_compliance_event
from ..compliance.patterns import business_date
from ..compliance.settings import ComplianceSettings

NON_DIGITS = re.compile(r'\D')


def normalize_cpf(cpf: str) -> str:
    """Strip punctuation from a CPF, keeping the 11 digits."""
    return NON_DIGITS.sub('', cpf or '')


def age_on(birth_date: date, today: date) -> int:
    """Completed years between a birth date and a reference day."""
    before_birthday = (today.month, today.day) < (birth_date.month, birth_date.day)
    return today.year - birth_date.year - int(before_birthday)


class RegistrationService:
    """Registers workers and moves them through approval."""

    def __init__(
        self,
        session: Session,
        minimum_age: int = 18,
        clock: Callable[[], datetime] = utcnow,
        business_timezone: str = ComplianceSettings.business_timezone,
    ):
        self.session = session
        self.minimum_age = minimum_age
        self.clock = clock
        self.business_timezone = business_timezone

    def _require_worker(self, worker_id: int) -> Worker:
        worker = self.session.get(Worker, worker_id)
        if worker is None:
            raise NotFoundError("Worker", details={'workerId': worker_id})
        return worker

    def register_worker(
        self,
        full_name: str,
        cpf: str,
        date_of_birth: date,
        worker_type: Union[WorkerType, str] = WorkerType.DAILY,
        phone: Optional[str] = None,
        daily_rate: Optional[Decimal] = None,
    ) -> Worker:
        """
        Register a worker as pending approval.

        Raises:
            ValidationError: Invalid CPF, unknown worker type or under the minimum age
            ConflictError: CPF already registered
        """
        digits = normalize_cpf(cpf)
        if len(digits) != 11:
            raise ValidationError("CPF must have 11 digits", field="cpf")

        try:
            worker_type = WorkerType(worker_type)
        except ValueError:
            raise ValidationError(
                f"Invalid worker type: {worker_type}", field="workerType"
            ) from None

        age = age_on(date_of_birth, business_date(self.clock(), self.business_timezone))
        if age < self.minimum_age:
            raise ValidationError(
                f"Registration not allowed for workers under {self.minimum_age}",
                field="dateOfBirth",
                details={'age': age, 'minimumAge': self.minimum_age},
            )

        existing = self.session.execute(
            select(Worker.id).where(Worker.cpf == digits)
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError(
                "A worker with this CPF is already registered",
                details={'workerId': existing},
            )

        worker = Worker(
            full_name=full_name,
            cpf=digits,
            date_of_birth=date_of_birth,
            worker_type=worker_type,
            phone=phone,
            daily_rate=daily_rate,
            registration_status=RegistrationStatus.PENDING,
            status=WorkerStatus.INACTIVE,
        )
        self.session.add(worker)
        self.session.flush()

        log_compliance_event('worker_registered', worker.id, worker_type=worker_type.value)
        return worker

    def approve_worker(self, worker_id: int, actor_id: str) -> Worker:
        worker = self._require_worker(worker_id)
        if worker.registration_status == RegistrationStatus.APPROVED:
            raise BusinessLogicError("Worker is already approved", code="ALREADY_APPROVED")

        worker.registration_status = RegistrationStatus.APPROVED
        worker.status = WorkerStatus.BLOCKED if worker.is_blocked else WorkerStatus.ACTIVE
        worker.approved_by = actor_id
        worker.approved_at = self.clock()
        worker.rejection_reason = None

        log_compliance_event('worker_approved', worker.id, actor_id=actor_id)
        return worker

    def reject_worker(self, worker_id: int, actor_id: str, reason: str) -> Worker:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required", field="reason")

        worker = self._require_worker(worker_id)
        worker.registration_status = RegistrationStatus.REJECTED
        worker.status = WorkerStatus.INACTIVE
        worker.rejection_reason = reason

        log_compliance_event('worker_rejected', worker.id, actor_id=actor_id, reason=reason)
        return worker

    def list_workers(
        self, registration_status: Optional[Union[RegistrationStatus, str]] = None
    ) -> List[Worker]:
        """Workers newest first, optionally only one registration status."""
        stmt = select(Worker)
        if registration_status is not None:
            try:
                registration_status = RegistrationStatus(registration_status)
            except ValueError:
                raise ValidationError(
                    f"Invalid registration status: {registration_status}",
                    field="registrationStatus",
                ) from None
            stmt = stmt.where(Worker.registration_status == registration_status)
        stmt = stmt.order_by(Worker.created_at.desc(), Worker.id.desc())
        return list(self.session.execute(stmt).scalars())
