"""
Tests for the Block Expiry Worker

Covers one sweep cycle, rollback on failure and the health file.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from workguard.domains.compliance import ComplianceService
from workguard.models import BlockType, utcnow
from workguard.workers import BlockExpiryWorker


@pytest.fixture
def sweeper(app, tmp_path):
    app.config['BLOCK_SWEEP_HEALTH_FILE'] = str(tmp_path / 'sweep_health')
    return BlockExpiryWorker(app)


@pytest.fixture
def expired_worker(service, session, worker):
    service.block_worker(worker.id, 'Absence', 'coordinator-1', 'temporary', days_blocked=3)
    worker.block_expires_at = utcnow() - timedelta(hours=1)
    session.commit()
    return worker


class TestBlockExpiryWorker:

    def test_reads_interval_from_config(self, app, sweeper):
        assert sweeper.interval_seconds == app.config['BLOCK_SWEEP_INTERVAL']
        assert sweeper.settings.continuity_legal_limit_days == 2

    def test_cycle_releases_expired_blocks(self, sweeper, session, expired_worker):
        result = sweeper.perform_sweep_cycle()

        assert result == {'unblocked': 1, 'failed': 0}
        session.refresh(expired_worker)
        assert expired_worker.is_blocked is False
        assert expired_worker.block_type is None

    def test_active_blocks_untouched(self, sweeper, service, worker):
        service.block_worker(worker.id, 'Fraud', 'coordinator-1', BlockType.PERMANENT)

        assert sweeper.perform_sweep_cycle() == {'unblocked': 0, 'failed': 0}
        assert worker.is_blocked is True

    def test_database_error_rolls_back(self, sweeper, session, expired_worker):
        error = OperationalError('SELECT', {}, Exception('database is locked'))

        with patch.object(
            ComplianceService, 'check_and_unblock_expired_blocks', side_effect=error
        ), patch.object(session, 'rollback', wraps=session.rollback) as rollback:
            assert sweeper.perform_sweep_cycle() is None

        rollback.assert_called_once()

    def test_unexpected_error_returns_none(self, sweeper, expired_worker):
        with patch.object(
            ComplianceService, 'check_and_unblock_expired_blocks',
            side_effect=RuntimeError('boom'),
        ):
            assert sweeper.perform_sweep_cycle() is None

        assert expired_worker.is_blocked is True

    def test_health_file_written(self, sweeper, tmp_path):
        sweeper.update_health_check()

        assert float((tmp_path / 'sweep_health').read_text()) > 0
