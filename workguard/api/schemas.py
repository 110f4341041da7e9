"""
Request Validation Schemas

marshmallow schemas for every request body. JSON uses camelCase keys; loaded
data uses the snake_case argument names of the service methods.
"""

from marshmallow import Schema, fields, validate

from workguard.models import (
    AllocationStatus,
    BlockType,
    IncidentSeverity,
    IncidentType,
    RefusalType,
    RegistrationStatus,
    WorkerType,
)


def _values(enum_cls):
    return [member.value for member in enum_cls]


class RegisterWorkerSchema(Schema):
    """Schema for worker registration."""

    full_name = fields.Str(
        required=True, data_key="fullName", validate=validate.Length(min=2, max=255)
    )
    cpf = fields.Str(required=True, validate=validate.Length(min=11, max=14))
    date_of_birth = fields.Date(required=True, data_key="dateOfBirth")
    worker_type = fields.Str(
        data_key="workerType",
        load_default=WorkerType.DAILY.value,
        validate=validate.OneOf(_values(WorkerType)),
    )
    phone = fields.Str(validate=validate.Length(max=20))
    daily_rate = fields.Decimal(
        data_key="dailyRate", places=2, validate=validate.Range(min=0)
    )


class RejectWorkerSchema(Schema):
    reason = fields.Str(required=True, validate=validate.Length(min=1))


class BlockWorkerSchema(Schema):
    """Schema for manual blocks."""

    reason = fields.Str(required=True, validate=validate.Length(min=1))
    block_type = fields.Str(
        data_key="blockType",
        load_default=BlockType.TEMPORARY.value,
        validate=validate.OneOf(_values(BlockType)),
    )
    days_blocked = fields.Int(
        data_key="daysBlocked", allow_none=True, validate=validate.Range(min=1)
    )


class UnblockWorkerSchema(Schema):
    reason = fields.Str(required=True, validate=validate.Length(min=1))


class RefusalSchema(Schema):
    """Schema for registering a declined assignment."""

    refusal_reason = fields.Str(
        required=True, data_key="refusalReason", validate=validate.Length(min=1)
    )
    refusal_type = fields.Str(
        required=True,
        data_key="refusalType",
        validate=validate.OneOf(_values(RefusalType)),
    )
    refusal_date = fields.DateTime(data_key="refusalDate")
    operation_id = fields.Int(data_key="operationId", allow_none=True)
    client_id = fields.Int(data_key="clientId", allow_none=True)
    evidence = fields.Str(allow_none=True)


class ContinuityCheckSchema(Schema):
    client_id = fields.Int(required=True, data_key="clientId")


class AllocationSchema(Schema):
    """Schema for allocation creation."""

    worker_id = fields.Int(required=True, data_key="workerId")
    client_id = fields.Int(required=True, data_key="clientId")
    location_id = fields.Int(required=True, data_key="locationId")
    work_date = fields.Date(required=True, data_key="workDate")
    job_function = fields.Str(data_key="jobFunction", validate=validate.Length(max=100))
    daily_rate = fields.Decimal(
        data_key="dailyRate", places=2, validate=validate.Range(min=0)
    )


class AllocationStatusSchema(Schema):
    status = fields.Str(
        required=True, validate=validate.OneOf(_values(AllocationStatus))
    )


class OperationMemberSchema(Schema):
    worker_id = fields.Int(required=True, data_key="workerId")
    job_function = fields.Str(data_key="jobFunction", validate=validate.Length(max=100))
    daily_rate = fields.Decimal(
        data_key="dailyRate", places=2, validate=validate.Range(min=0)
    )


class OperationSchema(Schema):
    """Schema for operation creation with its invited members."""

    client_id = fields.Int(required=True, data_key="clientId")
    location_id = fields.Int(required=True, data_key="locationId")
    operation_name = fields.Str(
        required=True, data_key="operationName", validate=validate.Length(min=1, max=255)
    )
    work_date = fields.Date(required=True, data_key="workDate")
    members = fields.List(fields.Nested(OperationMemberSchema), load_default=list)


class AcceptOperationSchema(Schema):
    cpf = fields.Str(required=True, validate=validate.Length(min=11, max=14))


class IncidentSchema(Schema):
    """Schema for incident reports."""

    worker_id = fields.Int(data_key="workerId", allow_none=True)
    incident_type = fields.Str(
        required=True,
        data_key="incidentType",
        validate=validate.OneOf(_values(IncidentType)),
    )
    description = fields.Str(required=True, validate=validate.Length(min=1))
    severity = fields.Str(
        load_default=IncidentSeverity.MEDIUM.value,
        validate=validate.OneOf(_values(IncidentSeverity)),
    )


class SuggestionQuerySchema(Schema):
    client_id = fields.Int(required=True, data_key="clientId")
    location_id = fields.Int(required=True, data_key="locationId")
    quantity = fields.Int(load_default=1, validate=validate.Range(min=1, max=100))


class WorkerRiskQuerySchema(Schema):
    client_id = fields.Int(required=True, data_key="clientId")
    location_id = fields.Int(required=True, data_key="locationId")


class ClientSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    document = fields.Str(allow_none=True, validate=validate.Length(max=20))


class WorkLocationSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    address = fields.Str(allow_none=True)


class WorkerListQuerySchema(Schema):
    registration_status = fields.Str(
        data_key="registrationStatus",
        validate=validate.OneOf(_values(RegistrationStatus)),
    )


class AllocationListQuerySchema(Schema):
    """Filters for listing allocations; all optional and combined with AND."""

    worker_id = fields.Int(data_key="workerId")
    client_id = fields.Int(data_key="clientId")
    location_id = fields.Int(data_key="locationId")
    start_date = fields.Date(data_key="startDate")
    end_date = fields.Date(data_key="endDate")
    status = fields.Str(validate=validate.OneOf(_values(AllocationStatus)))
