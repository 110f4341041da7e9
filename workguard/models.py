"""
WorkGuard - Database Models

Workers, clients, work locations, allocations, operations and the
compliance tables (block ledger, refusals, autonomy metrics).
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, Dict, Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum as SQLEnum, ForeignKey, Index,
    Integer, Numeric, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

# Initialize SQLAlchemy
db = SQLAlchemy()


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


# Enums for type safety
class WorkerType(PyEnum):
    DAILY = "daily"
    FREELANCER = "freelancer"
    MEI = "mei"
    CLT = "clt"


class RegistrationStatus(PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkerStatus(PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class BlockType(PyEnum):
    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class BlockAction(PyEnum):
    BLOCKED = "blocked"
    UNBLOCKED = "unblocked"


class RiskLevel(PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AllocationStatus(PyEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OperationStatus(PyEnum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MemberStatus(PyEnum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    PRESENT = "present"
    COMPLETED = "completed"
    ABSENT = "absent"


class IncidentType(PyEnum):
    ABSENCE = "absence"
    LATE_ARRIVAL = "late_arrival"
    EARLY_DEPARTURE = "early_departure"
    MISCONDUCT = "misconduct"
    ACCIDENT = "accident"
    EQUIPMENT_ISSUE = "equipment_issue"
    QUALITY_ISSUE = "quality_issue"
    OTHER = "other"


class IncidentSeverity(PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RefusalType(PyEnum):
    SCHEDULING_CONFLICT = "scheduling_conflict"
    DISTANCE = "distance"
    RATE_TOO_LOW = "rate_too_low"
    PERSONAL_REASONS = "personal_reasons"
    ALREADY_WORKING = "already_working"
    OTHER = "other"


# Base Model with common fields
class BaseModel(db.Model):
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Client(BaseModel):
    __tablename__ = 'clients'

    name = Column(String(255), nullable=False)
    document = Column(String(20))
    is_active = Column(Boolean, default=True, nullable=False)

    locations = relationship('WorkLocation', back_populates='client')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'document': self.document,
            'isActive': self.is_active,
        }


class WorkLocation(BaseModel):
    __tablename__ = 'work_locations'

    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)

    client = relationship('Client', back_populates='locations')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'clientId': self.client_id,
            'name': self.name,
            'address': self.address,
        }


class Worker(BaseModel):
    __tablename__ = 'workers'

    # Identity
    full_name = Column(String(255), nullable=False)
    cpf = Column(String(14), unique=True, nullable=False, index=True)
    date_of_birth = Column(Date)
    phone = Column(String(20))
    worker_type = Column(SQLEnum(WorkerType), default=WorkerType.DAILY, nullable=False)
    daily_rate = Column(Numeric(10, 2))

    # Registration lifecycle
    registration_status = Column(
        SQLEnum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False
    )
    status = Column(SQLEnum(WorkerStatus), default=WorkerStatus.INACTIVE, nullable=False)
    approved_by = Column(String(64))
    approved_at = Column(DateTime)
    rejection_reason = Column(Text)

    # Current block snapshot (last ledger entry wins)
    is_blocked = Column(Boolean, default=False, nullable=False)
    block_reason = Column(Text)
    blocked_at = Column(DateTime)
    blocked_by = Column(String(64))
    block_type = Column(SQLEnum(BlockType))
    block_expires_at = Column(DateTime)

    # Current risk snapshot (last writer wins)
    risk_score = Column(Integer, default=0, nullable=False)
    risk_level = Column(SQLEnum(RiskLevel), default=RiskLevel.LOW, nullable=False)
    risk_updated_at = Column(DateTime)

    allocations = relationship('Allocation', back_populates='worker')
    block_history = relationship('WorkerBlockHistory', back_populates='worker')
    refusals = relationship('WorkerRefusal', back_populates='worker')
    autonomy_metrics = relationship(
        'WorkerAutonomyMetrics', back_populates='worker', uselist=False
    )

    __table_args__ = (
        Index('idx_worker_block_sweep', 'is_blocked', 'block_type', 'block_expires_at'),
        Index('idx_worker_status', 'status', 'registration_status'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'fullName': self.full_name,
            'cpf': self.cpf,
            'dateOfBirth': _iso(self.date_of_birth),
            'phone': self.phone,
            'workerType': self.worker_type.value if self.worker_type else None,
            'dailyRate': _money(self.daily_rate),
            'registrationStatus': self.registration_status.value,
            'status': self.status.value,
            'approvedBy': self.approved_by,
            'approvedAt': _iso(self.approved_at),
            'rejectionReason': self.rejection_reason,
            'isBlocked': self.is_blocked,
            'blockReason': self.block_reason,
            'blockedAt': _iso(self.blocked_at),
            'blockedBy': self.blocked_by,
            'blockType': self.block_type.value if self.block_type else None,
            'blockExpiresAt': _iso(self.block_expires_at),
            'riskScore': self.risk_score,
            'riskLevel': self.risk_level.value if self.risk_level else None,
            'riskUpdatedAt': _iso(self.risk_updated_at),
        }


class Allocation(BaseModel):
    __tablename__ = 'allocations'

    worker_id = Column(Integer, ForeignKey('workers.id'), nullable=False)
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False)
    location_id = Column(Integer, ForeignKey('work_locations.id'), nullable=False)
    work_date = Column(Date, nullable=False)
    job_function = Column(String(100))
    daily_rate = Column(Numeric(10, 2))
    status = Column(
        SQLEnum(AllocationStatus), default=AllocationStatus.SCHEDULED, nullable=False
    )

    # Point-in-time risk snapshot, written once at creation
    consecutive_days = Column(Integer, default=0, nullable=False)
    days_this_month = Column(Integer, default=0, nullable=False)
    risk_flag = Column(Boolean, default=False, nullable=False)

    worker = relationship('Worker', back_populates='allocations')

    __table_args__ = (
        Index('idx_allocation_worker_client_date', 'worker_id', 'client_id', 'work_date'),
        Index('idx_allocation_worker_location_date', 'worker_id', 'location_id', 'work_date'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'workerId': self.worker_id,
            'clientId': self.client_id,
            'locationId': self.location_id,
            'workDate': _iso(self.work_date),
            'jobFunction': self.job_function,
            'dailyRate': _money(self.daily_rate),
            'status': self.status.value,
            'consecutiveDays': self.consecutive_days,
            'daysThisMonth': self.days_this_month,
            'riskFlag': self.risk_flag,
            'createdAt': _iso(self.created_at),
        }


class Operation(BaseModel):
    __tablename__ = 'operations'

    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey('work_locations.id'), nullable=False)
    operation_name = Column(String(255), nullable=False)
    work_date = Column(Date, nullable=False, index=True)
    status = Column(
        SQLEnum(OperationStatus), default=OperationStatus.CREATED, nullable=False
    )
    created_by = Column(String(64))

    members = relationship('OperationMember', back_populates='operation')
    incidents = relationship('OperationIncident', back_populates='operation')

    def to_dict(self, include_members: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'clientId': self.client_id,
            'locationId': self.location_id,
            'operationName': self.operation_name,
            'workDate': _iso(self.work_date),
            'status': self.status.value,
            'createdBy': self.created_by,
        }
        if include_members:
            data['members'] = [member.to_dict() for member in self.members]
        return data


class OperationMember(BaseModel):
    __tablename__ = 'operation_members'

    operation_id = Column(Integer, ForeignKey('operations.id'), nullable=False)
    worker_id = Column(Integer, ForeignKey('workers.id'), nullable=False, index=True)
    job_function = Column(String(100))
    daily_rate = Column(Numeric(10, 2))
    status = Column(SQLEnum(MemberStatus), default=MemberStatus.INVITED, nullable=False)
    accepted_at = Column(DateTime)
    cpf_confirmed = Column(Boolean, default=False, nullable=False)
    check_in_at = Column(DateTime)
    check_out_at = Column(DateTime)

    operation = relationship('Operation', back_populates='members')
    worker = relationship('Worker')

    __table_args__ = (
        UniqueConstraint('operation_id', 'worker_id', name='uq_operation_member'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'operationId': self.operation_id,
            'workerId': self.worker_id,
            'jobFunction': self.job_function,
            'dailyRate': _money(self.daily_rate),
            'status': self.status.value,
            'acceptedAt': _iso(self.accepted_at),
            'cpfConfirmed': self.cpf_confirmed,
            'checkInAt': _iso(self.check_in_at),
            'checkOutAt': _iso(self.check_out_at),
        }


class OperationIncident(BaseModel):
    __tablename__ = 'operation_incidents'

    operation_id = Column(Integer, ForeignKey('operations.id'), nullable=False)
    worker_id = Column(Integer, ForeignKey('workers.id'))
    incident_type = Column(SQLEnum(IncidentType), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(
        SQLEnum(IncidentSeverity), default=IncidentSeverity.MEDIUM, nullable=False
    )
    reported_by = Column(String(64), nullable=False)

    operation = relationship('Operation', back_populates='incidents')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'operationId': self.operation_id,
            'workerId': self.worker_id,
            'incidentType': self.incident_type.value,
            'description': self.description,
            'severity': self.severity.value,
            'reportedBy': self.reported_by,
            'createdAt': _iso(self.created_at),
        }


class WorkerBlockHistory(BaseModel):
    """Append-only audit ledger of block and unblock actions."""

    __tablename__ = 'worker_block_history'

    worker_id = Column(Integer, ForeignKey('workers.id'), nullable=False, index=True)
    action = Column(SQLEnum(BlockAction), nullable=False)
    reason = Column(Text, nullable=False)
    block_type = Column(SQLEnum(BlockType))
    block_expires_at = Column(DateTime)
    actor_id = Column(String(64), nullable=False)

    worker = relationship('Worker', back_populates='block_history')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'workerId': self.worker_id,
            'action': self.action.value,
            'reason': self.reason,
            'blockType': self.block_type.value if self.block_type else None,
            'blockExpiresAt': _iso(self.block_expires_at),
            'actorId': self.actor_id,
            'createdAt': _iso(self.created_at),
        }


class WorkerRefusal(BaseModel):
    """Append-only record of a declined assignment."""

    __tablename__ = 'worker_refusals'

    worker_id = Column(Integer, ForeignKey('workers.id'), nullable=False, index=True)
    operation_id = Column(Integer, ForeignKey('operations.id'))
    client_id = Column(Integer, ForeignKey('clients.id'))
    refusal_reason = Column(Text, nullable=False)
    refusal_type = Column(SQLEnum(RefusalType), nullable=False)
    refusal_date = Column(DateTime, nullable=False)
    evidence = Column(Text)
    registered_by = Column(String(64), nullable=False)

    worker = relationship('Worker', back_populates='refusals')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'workerId': self.worker_id,
            'operationId': self.operation_id,
            'clientId': self.client_id,
            'refusalReason': self.refusal_reason,
            'refusalType': self.refusal_type.value,
            'refusalDate': _iso(self.refusal_date),
            'evidence': self.evidence,
            'registeredBy': self.registered_by,
        }


class WorkerAutonomyMetrics(BaseModel):
    """Derived cache, rebuilt from refusals and memberships on every recompute."""

    __tablename__ = 'worker_autonomy_metrics'

    worker_id = Column(Integer, ForeignKey('workers.id'), nullable=False, unique=True)
    total_refusals = Column(Integer, default=0, nullable=False)
    unique_clients = Column(Integer, default=0, nullable=False)
    unique_locations = Column(Integer, default=0, nullable=False)
    total_operations = Column(Integer, default=0, nullable=False)
    first_operation_date = Column(Date)
    last_operation_date = Column(Date)
    autonomy_score = Column(Integer, default=0, nullable=False)
    last_calculated_at = Column(DateTime)

    worker = relationship('Worker', back_populates='autonomy_metrics')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workerId': self.worker_id,
            'totalRefusals': self.total_refusals,
            'uniqueClients': self.unique_clients,
            'uniqueLocations': self.unique_locations,
            'totalOperations': self.total_operations,
            'firstOperationDate': _iso(self.first_operation_date),
            'lastOperationDate': _iso(self.last_operation_date),
            'autonomyScore': self.autonomy_score,
            'lastCalculatedAt': _iso(self.last_calculated_at),
        }


def init_db(app):
    """Create tables for the configured database."""
    db.create_all()
    app.logger.info("Database tables ensured")
