"""
Unit Tests for the Block Manager

Tests manual blocks, the block ledger, the expiry sweep with per-worker
failure isolation, the continuity rule and incident-driven blocks.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from workguard.domains.compliance import ComplianceService
from workguard.domains.compliance.blocking import EXPIRED_BLOCK_REASON
from workguard.domains.compliance.repository import ComplianceRepository
from workguard.models import BlockAction, BlockType, WorkerStatus
from workguard.utils.exceptions import NotFoundError, ValidationError

from tests.conftest import FIXED_NOW, TODAY


def service_at(session, settings, moment):
    return ComplianceService(session, settings, clock=lambda: moment)


class TestManualBlocks:
    """Test block and unblock with their ledger entries."""

    def test_temporary_block(self, service, session, worker):
        service.block_worker(worker.id, 'No-show twice', 'coordinator-1',
                             BlockType.TEMPORARY, days_blocked=7)
        session.commit()

        assert worker.is_blocked is True
        assert worker.status == WorkerStatus.BLOCKED
        assert worker.block_type == BlockType.TEMPORARY
        assert worker.blocked_at == FIXED_NOW
        assert worker.blocked_by == 'coordinator-1'
        assert worker.block_expires_at == FIXED_NOW + timedelta(days=7)

        history = service.get_worker_block_history(worker.id)
        assert len(history) == 1
        assert history[0].action == BlockAction.BLOCKED
        assert history[0].block_expires_at == worker.block_expires_at
        assert history[0].actor_id == 'coordinator-1'

    def test_permanent_block_never_expires(self, service, worker):
        service.block_worker(worker.id, 'Fraud', 'coordinator-1', 'permanent')

        assert worker.block_type == BlockType.PERMANENT
        assert worker.block_expires_at is None

    @pytest.mark.parametrize("days", [None, 0, -3])
    def test_temporary_block_requires_positive_days(self, service, worker, days):
        with pytest.raises(ValidationError):
            service.block_worker(worker.id, 'Late', 'coordinator-1', 'temporary', days)

        assert worker.is_blocked is False
        assert service.get_worker_block_history(worker.id) == []

    def test_reblock_overwrites_current_block(self, service, session, worker):
        service.block_worker(worker.id, 'No-show', 'coordinator-1', 'temporary', 3)
        service.block_worker(worker.id, 'Fraud confirmed', 'manager-1', 'permanent')
        session.commit()

        assert worker.is_blocked is True
        assert worker.block_type == BlockType.PERMANENT
        assert worker.block_expires_at is None
        assert worker.block_reason == 'Fraud confirmed'
        assert worker.blocked_by == 'manager-1'

        history = service.get_worker_block_history(worker.id)
        assert [entry.action for entry in history] == [BlockAction.BLOCKED, BlockAction.BLOCKED]
        assert [entry.block_type for entry in history] == [BlockType.PERMANENT, BlockType.TEMPORARY]

    def test_block_requires_reason(self, service, worker):
        with pytest.raises(ValidationError):
            service.block_worker(worker.id, '', 'coordinator-1', 'permanent')

    def test_unknown_block_type(self, service, worker):
        with pytest.raises(ValidationError):
            service.block_worker(worker.id, 'Late', 'coordinator-1', 'forever')

    def test_unknown_worker(self, service):
        with pytest.raises(NotFoundError):
            service.block_worker(999, 'Late', 'coordinator-1', 'permanent')

    def test_unblock_restores_active_status(self, service, worker):
        service.block_worker(worker.id, 'Fraud', 'coordinator-1', 'permanent')
        service.unblock_worker(worker.id, 'Cleared by review', 'manager-1')

        assert worker.is_blocked is False
        assert worker.status == WorkerStatus.ACTIVE
        assert worker.block_reason is None
        assert worker.block_type is None
        assert worker.blocked_at is None

        history = service.get_worker_block_history(worker.id)
        assert [entry.action for entry in history] == [BlockAction.UNBLOCKED, BlockAction.BLOCKED]
        assert history[0].reason == 'Cleared by review'
        assert history[0].actor_id == 'manager-1'

    def test_unblock_pending_worker_stays_inactive(self, service, make_worker):
        pending = make_worker(approved=False)
        service.block_worker(pending.id, 'Fraud', 'coordinator-1', 'permanent')
        service.unblock_worker(pending.id, 'Cleared', 'manager-1')

        assert pending.status == WorkerStatus.INACTIVE

    def test_blocked_workers_listed(self, service, make_worker):
        first = make_worker()
        make_worker()
        service.block_worker(first.id, 'Fraud', 'coordinator-1', 'permanent')

        assert [w.id for w in service.get_blocked_workers()] == [first.id]


class TestExpiredBlockSweep:
    """Test the expiry sweep."""

    @pytest.fixture
    def blocked_worker(self, service, session, worker):
        service.block_worker(worker.id, 'No-show', 'coordinator-1', 'temporary', 7)
        session.commit()
        return worker

    def test_not_released_before_expiry(self, session, settings, blocked_worker):
        result = service_at(session, settings, FIXED_NOW + timedelta(days=6)) \
            .check_and_unblock_expired_blocks()

        assert result == {'unblocked': 0, 'failed': 0}
        assert blocked_worker.is_blocked is True

    def test_not_released_at_exact_expiry(self, session, settings, blocked_worker):
        result = service_at(session, settings, FIXED_NOW + timedelta(days=7)) \
            .check_and_unblock_expired_blocks()

        assert result['unblocked'] == 0

    def test_released_after_expiry(self, session, settings, blocked_worker):
        later = service_at(session, settings, FIXED_NOW + timedelta(days=8))

        result = later.check_and_unblock_expired_blocks()
        session.commit()

        assert result == {'unblocked': 1, 'failed': 0}
        assert blocked_worker.is_blocked is False
        assert blocked_worker.status == WorkerStatus.ACTIVE

        latest = later.get_worker_block_history(blocked_worker.id)[0]
        assert latest.action == BlockAction.UNBLOCKED
        assert latest.actor_id == settings.system_actor_id
        assert latest.reason == EXPIRED_BLOCK_REASON

    def test_repeated_sweeps_release_once(self, session, settings, blocked_worker):
        later = service_at(session, settings, FIXED_NOW + timedelta(days=8))

        first = later.check_and_unblock_expired_blocks()
        session.commit()
        second = later.check_and_unblock_expired_blocks()
        session.commit()

        assert first == {'unblocked': 1, 'failed': 0}
        assert second == {'unblocked': 0, 'failed': 0}
        history = later.get_worker_block_history(blocked_worker.id)
        assert [entry.action for entry in history] == [BlockAction.UNBLOCKED, BlockAction.BLOCKED]

    def test_permanent_blocks_untouched(self, service, session, settings, worker):
        service.block_worker(worker.id, 'Fraud', 'coordinator-1', 'permanent')
        session.commit()

        result = service_at(session, settings, FIXED_NOW + timedelta(days=365)) \
            .check_and_unblock_expired_blocks()

        assert result['unblocked'] == 0
        assert worker.is_blocked is True

    def test_one_failure_does_not_stop_the_sweep(
        self, service, session, settings, make_worker
    ):
        failing = make_worker(full_name='Failing Worker')
        healthy = make_worker(full_name='Healthy Worker')
        for target in (failing, healthy):
            service.block_worker(target.id, 'No-show', 'coordinator-1', 'temporary', 3)
        session.commit()
        failing_id, healthy_id = failing.id, healthy.id

        original = ComplianceRepository.insert_block_ledger_entry

        def flaky_insert(repository, entry):
            # the worker row is already released when the ledger write fails
            if entry.worker_id == failing_id:
                raise RuntimeError("ledger unavailable")
            return original(repository, entry)

        later = service_at(session, settings, FIXED_NOW + timedelta(days=4))
        with patch.object(
            ComplianceRepository, 'insert_block_ledger_entry',
            autospec=True, side_effect=flaky_insert,
        ):
            result = later.check_and_unblock_expired_blocks()
        session.commit()

        assert result == {'unblocked': 1, 'failed': 1}
        failed_worker = later.repository.require_worker(failing_id)
        assert failed_worker.is_blocked is True
        assert failed_worker.block_type == BlockType.TEMPORARY
        assert len(later.get_worker_block_history(failing_id)) == 1
        assert later.repository.require_worker(healthy_id).is_blocked is False
        assert len(later.get_worker_block_history(healthy_id)) == 2


class TestContinuityRule:
    """Test blocking after too many consecutive days at one client."""

    def test_blocks_above_the_limit(self, service, worker, warehouse, make_membership):
        for offset in range(3):
            make_membership(worker, warehouse, TODAY - timedelta(days=offset))

        result = service.check_and_block_by_continuity(
            worker.id, warehouse.client_id, 'system'
        )

        assert result['blocked'] is True
        assert result['consecutiveDays'] == 3
        assert worker.is_blocked is True
        assert worker.block_type == BlockType.TEMPORARY
        assert worker.block_expires_at == FIXED_NOW + timedelta(days=7)
        assert worker.block_reason == (
            "Automatic block: 3 consecutive days at the same client "
            "(legal limit: 2 days). High labor risk."
        )

    def test_advisory_at_the_limit(self, service, worker, warehouse, make_membership):
        for offset in range(2):
            make_membership(worker, warehouse, TODAY - timedelta(days=offset))

        result = service.check_and_block_by_continuity(
            worker.id, warehouse.client_id, 'system'
        )

        assert result['blocked'] is False
        assert result['consecutiveDays'] == 2
        assert result['message'] != 'OK'
        assert worker.is_blocked is False

    def test_ok_below_the_limit(self, service, worker, warehouse, make_membership):
        make_membership(worker, warehouse, TODAY)

        result = service.check_and_block_by_continuity(
            worker.id, warehouse.client_id, 'system'
        )

        assert result == {'blocked': False, 'consecutiveDays': 1, 'message': 'OK'}

    def test_unknown_worker(self, service, warehouse):
        with pytest.raises(NotFoundError):
            service.check_and_block_by_continuity(999, warehouse.client_id, 'system')


class TestIncidentBlocks:
    """Test the incident rule table."""

    def test_absence_blocks_for_three_days(self, service, worker):
        result = service.auto_block_based_on_incident(worker.id, 'absence', 'coordinator-1')

        assert result['blocked'] is True
        assert result['rule']['blockType'] == 'temporary'
        assert result['rule']['days'] == 3
        assert worker.block_expires_at == FIXED_NOW + timedelta(days=3)

    @pytest.mark.parametrize("incident_type", ['misconduct', 'accident'])
    def test_serious_incidents_block_permanently(self, service, worker, incident_type):
        result = service.auto_block_based_on_incident(worker.id, incident_type, 'coordinator-1')

        assert result['blocked'] is True
        assert worker.block_type == BlockType.PERMANENT
        assert worker.block_expires_at is None

    @pytest.mark.parametrize("incident_type", ['late_arrival', 'quality_issue', 'flood'])
    def test_other_incidents_do_nothing(self, service, worker, incident_type):
        result = service.auto_block_based_on_incident(worker.id, incident_type, 'coordinator-1')

        assert result == {'blocked': False}
        assert worker.is_blocked is False


class TestComplianceMetrics:

    def test_no_workers(self, service):
        metrics = service.get_compliance_metrics()

        assert metrics['totalWorkers'] == 0
        assert metrics['complianceRate'] == '100.0'

    def test_rate_over_approved_workers(self, service, make_worker):
        workers = [make_worker() for _ in range(4)]
        pending = make_worker(approved=False)
        service.block_worker(workers[0].id, 'No-show', 'coordinator-1', 'temporary', 3)
        service.block_worker(workers[1].id, 'Fraud', 'coordinator-1', 'permanent')
        service.block_worker(pending.id, 'Fraud', 'coordinator-1', 'permanent')

        metrics = service.get_compliance_metrics()

        assert metrics == {
            'totalWorkers': 4,
            'blockedWorkers': 2,
            'temporaryBlocks': 1,
            'permanentBlocks': 1,
            'complianceRate': '50.0',
        }
