"""Retention worker: prune old audit and snapshot rows."""

import structlog

from ..core.interfaces import Storage
from .base import PeriodicWorker

logger = structlog.get_logger(__name__)


class CleanupWorker(PeriodicWorker):
    """Periodically deletes data older than the retention window."""

    name = "cleanup"

    def __init__(
        self, storage: Storage, days_to_keep: int = 7, interval_seconds: float = 3600.0
    ) -> None:
        super().__init__(interval_seconds)
        self.storage = storage
        self.days_to_keep = days_to_keep

    async def run_once(self) -> dict[str, int]:
        deleted = await self.storage.cleanup_old_data(self.days_to_keep)
        if any(deleted.values()):
            logger.info("Retention pass removed rows", total=sum(deleted.values()))
        return deleted
