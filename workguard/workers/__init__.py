"""Background processes for WorkGuard."""

from .block_expiry_worker import BlockExpiryWorker

__all__ = ['BlockExpiryWorker']
