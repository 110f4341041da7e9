"""
Block Expiry Worker - Periodic Release of Temporary Blocks

Runs the expired-block sweep on a fixed interval inside an application
context. Each cycle commits on success and rolls back on error; one bad
cycle never stops the loop.

WHAT BELONGS HERE:
- Scheduling the sweep and owning its transaction
- Liveness reporting for container health checks

WHAT DOES NOT BELONG HERE:
- Block rules and the per-worker release (BlockManager)
- Request-time decisions (AllocationGuard)
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from workguard.domains.compliance import ComplianceService, ComplianceSettings
from workguard.models import db
from workguard.utils.logger import get_logger

logger = get_logger('workguard.block_expiry_worker')


class BlockExpiryWorker:
    """
    Background sweep of expired temporary blocks.

    Runs continuously until terminated or the max runtime is reached, so a
    supervisor can restart it with a fresh process.
    """

    def __init__(self, app: Flask):
        self.app = app
        self.interval_seconds = app.config.get('BLOCK_SWEEP_INTERVAL', 3600)
        self.max_runtime_hours = app.config.get('BLOCK_SWEEP_MAX_RUNTIME', 24)
        self.settings = ComplianceSettings.from_config(app.config)

        # Health check file for Docker health checks
        self.health_file = app.config.get(
            'BLOCK_SWEEP_HEALTH_FILE', '/tmp/workguard_sweep_health'
        )

        logger.info("Block expiry worker initialized", extra={
            'interval': self.interval_seconds,
            'max_runtime_hours': self.max_runtime_hours,
        })

    def run(self) -> None:
        """Main worker loop."""
        start_time = datetime.now(timezone.utc)
        max_runtime = timedelta(hours=self.max_runtime_hours)

        logger.info("Starting block expiry worker")

        try:
            while True:
                cycle_start = datetime.now(timezone.utc)

                if cycle_start - start_time > max_runtime:
                    logger.info("Max runtime reached, restarting worker")
                    break

                if self.run_once() is not None:
                    self.update_health_check()

                cycle_duration = datetime.now(timezone.utc) - cycle_start
                sleep_time = max(0, self.interval_seconds - cycle_duration.total_seconds())
                if sleep_time > 0:
                    time.sleep(sleep_time)

        except KeyboardInterrupt:
            logger.info("Worker received shutdown signal")
        finally:
            logger.info("Worker shutting down")

    def run_once(self) -> Optional[Dict[str, int]]:
        """One sweep cycle inside an application context."""
        with self.app.app_context():
            return self.perform_sweep_cycle()

    def perform_sweep_cycle(self) -> Optional[Dict[str, int]]:
        """
        Release expired blocks and commit.

        Returns:
            The sweep counts, or None when the cycle was rolled back
        """
        session = db.session
        try:
            result = ComplianceService(session, self.settings).check_and_unblock_expired_blocks()
            session.commit()
        except SQLAlchemyError:
            logger.error("Database error in sweep cycle", exc_info=True)
            session.rollback()
            return None
        except Exception:
            logger.error("Unexpected error in sweep cycle", exc_info=True)
            session.rollback()
            return None

        logger.info("Sweep cycle completed", extra=result)
        return result

    def update_health_check(self) -> None:
        """Touch the health file to show the worker is alive."""
        try:
            with open(self.health_file, 'w') as f:
                f.write(str(time.time()))
        except OSError:
            logger.error("Failed to update health check file", exc_info=True)


def main():
    """
    Main entry point for the block expiry worker.

    Can be run directly or via Docker CMD.
    """
    from workguard import create_app

    BlockExpiryWorker(create_app()).run()


if __name__ == '__main__':
    main()
