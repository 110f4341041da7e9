"""
Shared test fixtures and configuration for the WorkGuard test suite.
"""

import itertools
from datetime import date, datetime
from decimal import Decimal

import pytest

from workguard import create_app
from workguard.domains.compliance import ComplianceService, ComplianceSettings
from workguard.models import (
    Allocation,
    AllocationStatus,
    Client,
    MemberStatus,
    Operation,
    OperationMember,
    OperationStatus,
    RegistrationStatus,
    WorkLocation,
    Worker,
    WorkerStatus,
    WorkerType,
    db,
)

# Every time-dependent scenario is anchored here
FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0)
TODAY = FIXED_NOW.date()

_cpf_sequence = itertools.count(10000000000)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def app():
    """Application with a fresh in-memory database and a pushed app context."""
    app = create_app('testing')
    ctx = app.app_context()
    ctx.push()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def api_client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def settings():
    return ComplianceSettings()


@pytest.fixture
def service(session, settings):
    """Compliance service on the fixed clock."""
    return ComplianceService(session, settings, clock=fixed_clock)


@pytest.fixture
def make_client(session):
    def factory(name='Acme Logistics'):
        client = Client(name=name, document='12345678000190', is_active=True)
        session.add(client)
        session.commit()
        return client
    return factory


@pytest.fixture
def make_location(session):
    def factory(client, name='Main Warehouse'):
        location = WorkLocation(client_id=client.id, name=name, address='Rua A, 100')
        session.add(location)
        session.commit()
        return location
    return factory


@pytest.fixture
def make_worker(session):
    def factory(
        full_name='Joao Silva',
        cpf=None,
        approved=True,
        daily_rate=Decimal('150.00'),
        date_of_birth=date(1990, 5, 1),
    ):
        worker = Worker(
            full_name=full_name,
            cpf=cpf or str(next(_cpf_sequence)),
            date_of_birth=date_of_birth,
            worker_type=WorkerType.DAILY,
            daily_rate=daily_rate,
            registration_status=(
                RegistrationStatus.APPROVED if approved else RegistrationStatus.PENDING
            ),
            status=WorkerStatus.ACTIVE if approved else WorkerStatus.INACTIVE,
            is_blocked=False,
        )
        session.add(worker)
        session.commit()
        return worker
    return factory


@pytest.fixture
def make_allocation(session):
    """Allocation row written directly, bypassing the risk gate."""
    def factory(worker, location, work_date, status=AllocationStatus.SCHEDULED, daily_rate=None):
        allocation = Allocation(
            worker_id=worker.id,
            client_id=location.client_id,
            location_id=location.id,
            work_date=work_date,
            daily_rate=daily_rate,
            status=status,
        )
        session.add(allocation)
        session.commit()
        return allocation
    return factory


@pytest.fixture
def make_membership(session):
    """One worker's membership in a single-day operation."""
    def factory(worker, location, work_date, status=MemberStatus.COMPLETED, daily_rate=None):
        operation = Operation(
            client_id=location.client_id,
            location_id=location.id,
            operation_name=f'Shift {work_date.isoformat()}',
            work_date=work_date,
            status=OperationStatus.COMPLETED,
            created_by='scheduler',
        )
        session.add(operation)
        session.flush()
        member = OperationMember(
            operation_id=operation.id,
            worker_id=worker.id,
            daily_rate=daily_rate if daily_rate is not None else worker.daily_rate,
            status=status,
        )
        session.add(member)
        session.commit()
        return member
    return factory


@pytest.fixture
def acme(make_client):
    return make_client()


@pytest.fixture
def warehouse(make_location, acme):
    return make_location(acme)


@pytest.fixture
def worker(make_worker):
    return make_worker()
