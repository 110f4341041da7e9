"""
Block Manager

State machine over a worker's block status:

    Unblocked ──block(temporary, days)──▶ TemporarilyBlocked(expires_at)
    Unblocked ──block(permanent)───────▶ PermanentlyBlocked
    any blocked state ──unblock────────▶ Unblocked
    TemporarilyBlocked ──expiry sweep──▶ Unblocked (system actor)

Every transition rewrites the worker's block snapshot and appends one row
to the block ledger. The ledger is never updated or deleted, so the current
snapshot can always be rebuilt as "last entry wins".
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from ...models import (
    BlockAction,
    BlockType,
    IncidentType,
    RegistrationStatus,
    Worker,
    WorkerBlockHistory,
    WorkerStatus,
    utcnow,
)
from ...utils.exceptions import ValidationError
from ...utils.logger import get_logger, log_block_event
from .patterns import TemporalPatternAnalyzer
from .repository import ComplianceRepository
from .settings import ComplianceSettings

logger = get_logger(__name__)

EXPIRED_BLOCK_REASON = "temporary block expired automatically"


@dataclass(frozen=True)
class IncidentBlockRule:
    """Block applied automatically when an incident of a given type is registered."""
    block_type: BlockType
    reason: str
    days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blockType': self.block_type.value,
            'days': self.days,
            'reason': self.reason,
        }


INCIDENT_BLOCK_RULES: Dict[IncidentType, IncidentBlockRule] = {
    IncidentType.ABSENCE: IncidentBlockRule(
        block_type=BlockType.TEMPORARY,
        days=3,
        reason="Unjustified absence - automatic 3-day block",
    ),
    IncidentType.MISCONDUCT: IncidentBlockRule(
        block_type=BlockType.PERMANENT,
        reason="Misconduct - permanent block pending administrative review",
    ),
    IncidentType.ACCIDENT: IncidentBlockRule(
        block_type=BlockType.PERMANENT,
        reason="Accident recorded - blocked pending investigation and training",
    ),
}


def _coerce_block_type(block_type: Union[BlockType, str]) -> BlockType:
    if isinstance(block_type, BlockType):
        return block_type
    try:
        return BlockType(block_type)
    except ValueError:
        raise ValidationError(
            f"Invalid block type: {block_type}", field="blockType"
        ) from None


def _coerce_incident_type(incident_type: Union[IncidentType, str]) -> Optional[IncidentType]:
    if isinstance(incident_type, IncidentType):
        return incident_type
    try:
        return IncidentType(incident_type)
    except ValueError:
        return None


class BlockManager:
    """Manual, automatic and incident-driven blocking of workers."""

    def __init__(
        self,
        repository: ComplianceRepository,
        analyzer: TemporalPatternAnalyzer,
        settings: Optional[ComplianceSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.analyzer = analyzer
        self.settings = settings or ComplianceSettings()
        self.clock = clock

    def block_worker(
        self,
        worker_id: int,
        reason: str,
        actor_id: str,
        block_type: Union[BlockType, str] = BlockType.TEMPORARY,
        days_blocked: Optional[int] = None,
    ) -> Worker:
        """
        Block a worker, overwriting any current block.

        Args:
            worker_id: Worker to block
            reason: Reason recorded on the worker and in the ledger
            actor_id: Who is blocking
            block_type: temporary or permanent
            days_blocked: Length of a temporary block, required for temporary blocks

        Raises:
            NotFoundError: If the worker does not exist
            ValidationError: If the reason is empty or a temporary block has no length
        """
        block_type = _coerce_block_type(block_type)
        if not reason or not reason.strip():
            raise ValidationError("Block reason is required", field="reason")
        if block_type == BlockType.TEMPORARY and (days_blocked is None or days_blocked <= 0):
            raise ValidationError(
                "Temporary blocks require a positive number of days", field="daysBlocked"
            )

        worker = self.repository.require_worker(worker_id)
        now = self.clock()
        expires_at = (
            now + timedelta(days=days_blocked)
            if block_type == BlockType.TEMPORARY else None
        )

        worker.is_blocked = True
        worker.block_reason = reason
        worker.blocked_at = now
        worker.blocked_by = actor_id
        worker.block_type = block_type
        worker.block_expires_at = expires_at
        worker.status = WorkerStatus.BLOCKED

        self.repository.insert_block_ledger_entry(
            WorkerBlockHistory(
                worker_id=worker.id,
                action=BlockAction.BLOCKED,
                reason=reason,
                block_type=block_type,
                block_expires_at=expires_at,
                actor_id=actor_id,
                created_at=now,
            )
        )

        log_block_event(
            'blocked',
            worker.id,
            actor_id,
            reason,
            block_type=block_type.value,
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        return worker

    def unblock_worker(self, worker_id: int, reason: str, actor_id: str) -> Worker:
        """
        Clear a worker's block.

        Raises:
            NotFoundError: If the worker does not exist
        """
        worker = self.repository.require_worker(worker_id)
        self._release(worker, reason, actor_id, self.clock())
        return worker

    def _release(self, worker: Worker, reason: str, actor_id: str, now: datetime) -> None:
        worker.is_blocked = False
        worker.block_reason = None
        worker.blocked_at = None
        worker.blocked_by = None
        worker.block_type = None
        worker.block_expires_at = None
        worker.status = (
            WorkerStatus.ACTIVE
            if worker.registration_status == RegistrationStatus.APPROVED
            else WorkerStatus.INACTIVE
        )

        self.repository.insert_block_ledger_entry(
            WorkerBlockHistory(
                worker_id=worker.id,
                action=BlockAction.UNBLOCKED,
                reason=reason,
                actor_id=actor_id,
                created_at=now,
            )
        )

        log_block_event('unblocked', worker.id, actor_id, reason)

    def check_and_unblock_expired_blocks(self) -> Dict[str, int]:
        """
        Unblock every temporary block whose expiry is strictly in the past.

        Each worker is released inside its own savepoint: one failure is
        logged and counted without undoing the others.

        Returns:
            {'unblocked': successes, 'failed': failures}
        """
        now = self.clock()
        session = self.repository.session
        unblocked = 0
        failed = 0

        for worker in self.repository.find_expired_temporary_blocks(now):
            worker_id = worker.id
            try:
                with session.begin_nested():
                    self._release(
                        worker, EXPIRED_BLOCK_REASON, self.settings.system_actor_id, now
                    )
                unblocked += 1
            except Exception:
                failed += 1
                logger.error(
                    "Failed to release expired block",
                    exc_info=True,
                    extra={'worker_id': worker_id},
                )

        if unblocked or failed:
            logger.info(
                "Expired block sweep finished",
                extra={'unblocked': unblocked, 'failed': failed},
            )
        return {'unblocked': unblocked, 'failed': failed}

    def check_and_block_by_continuity(
        self, worker_id: int, client_id: int, actor_id: str
    ) -> Dict[str, Any]:
        """
        Block a worker who went past the legal consecutive-day limit at a client.

        Above the limit the worker is blocked temporarily; exactly at the limit
        only an advisory is returned.
        """
        self.repository.require_worker(worker_id)
        consecutive_days = self.analyzer.calculate_consecutive_days(worker_id, client_id)
        limit = self.settings.continuity_legal_limit_days

        if consecutive_days > limit:
            block_days = self.settings.continuity_block_days
            reason = (
                f"Automatic block: {consecutive_days} consecutive days at the same "
                f"client (legal limit: {limit} days). High labor risk."
            )
            self.block_worker(
                worker_id,
                reason=reason,
                actor_id=actor_id,
                block_type=BlockType.TEMPORARY,
                days_blocked=block_days,
            )
            return {
                'blocked': True,
                'consecutiveDays': consecutive_days,
                'message': (
                    f"Worker blocked for {block_days} days after {consecutive_days} "
                    f"consecutive days at the same client."
                ),
            }

        if consecutive_days == limit:
            return {
                'blocked': False,
                'consecutiveDays': consecutive_days,
                'message': (
                    f"At risk: {consecutive_days} consecutive days at this client. "
                    f"Another day will exceed the legal limit."
                ),
            }

        return {'blocked': False, 'consecutiveDays': consecutive_days, 'message': "OK"}

    def auto_block_based_on_incident(
        self,
        worker_id: int,
        incident_type: Union[IncidentType, str],
        actor_id: str,
    ) -> Dict[str, Any]:
        """Apply the block rule for an incident type; types without a rule do nothing."""
        rule = INCIDENT_BLOCK_RULES.get(_coerce_incident_type(incident_type))
        if rule is None:
            return {'blocked': False}

        self.block_worker(
            worker_id,
            reason=rule.reason,
            actor_id=actor_id,
            block_type=rule.block_type,
            days_blocked=rule.days,
        )
        return {'blocked': True, 'rule': rule.to_dict()}

    def get_blocked_workers(self) -> List[Worker]:
        return self.repository.list_blocked_workers()

    def get_worker_block_history(self, worker_id: int) -> List[WorkerBlockHistory]:
        self.repository.require_worker(worker_id)
        return self.repository.list_block_ledger(worker_id)

    def get_compliance_metrics(self) -> Dict[str, Any]:
        counts = self.repository.count_workers_by_block_type()
        total = counts['total']
        blocked = counts['blocked']
        rate = ((total - blocked) / total * 100) if total > 0 else 100.0

        return {
            'totalWorkers': total,
            'blockedWorkers': blocked,
            'temporaryBlocks': counts['temporary'],
            'permanentBlocks': counts['permanent'],
            'complianceRate': f"{rate:.1f}",
        }
