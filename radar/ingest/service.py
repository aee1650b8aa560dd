"""Webhook ingestion: bounded queue, normalization and persistence."""

import asyncio
from typing import Any

import structlog

from ..core.interfaces import Storage
from ..core.types import PoolRecord
from .normalizer import EventNormalizer, NormalizationResult, event_type_label

logger = structlog.get_logger(__name__)


class IngestionService:
    """Accepts webhook payloads and persists their normalized records.

    ``submit`` returns immediately; payloads are processed by a small pool of
    queue consumers so the webhook caller never waits on storage.
    """

    def __init__(
        self,
        normalizer: EventNormalizer,
        storage: Storage,
        queue_size: int = 1000,
        workers: int = 2,
    ) -> None:
        """Initialize ingestion service.

        Args:
            normalizer: Event normalizer (owns the dedup cache)
            storage: Storage collaborator
            queue_size: Maximum number of pending payloads
            workers: Number of queue consumers
        """
        self.normalizer = normalizer
        self.storage = storage
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self.worker_count = workers
        self._tasks: list[asyncio.Task] = []
        self.running = False

    def submit(self, payload: Any) -> dict[str, bool]:
        """Enqueue a payload without waiting for processing.

        Returns:
            Acknowledgement; ``received`` is False when the queue is full
        """
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Ingestion queue full, dropping payload", size=self.queue.qsize())
            return {"received": False}
        return {"received": True}

    async def start(self) -> None:
        """Start queue consumers."""
        if self.running:
            return
        self.running = True
        self._tasks = [
            asyncio.create_task(self._consume(i)) for i in range(self.worker_count)
        ]
        logger.info("Ingestion service started", workers=self.worker_count)

    async def stop(self) -> None:
        """Drain pending payloads and stop consumers."""
        if not self.running:
            return
        await self.queue.join()
        self.running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Ingestion service stopped")

    async def _consume(self, worker_id: int) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self.process_payload(payload)
            except Exception as e:
                logger.error("Ingestion worker error", worker_id=worker_id, error=str(e))
            finally:
                self.queue.task_done()

    async def process_payload(self, payload: Any) -> NormalizationResult:
        """Normalize a payload and persist everything it yields.

        Raw records are audited first (best effort). Each write is isolated:
        a failing token, swap or pool is logged and the rest still land.

        Returns:
            The normalization result
        """
        records = payload if isinstance(payload, list) else [payload]
        for tx in records:
            if isinstance(tx, dict):
                await self.storage.store_raw_event(
                    event_type_label(tx), tx.get("signature"), tx
                )

        result = self.normalizer.normalize(payload)

        for sighting in result.sightings:
            try:
                await self.storage.upsert_token(
                    sighting.mint, {"discovered_via": sighting.source}
                )
                self.normalizer.dedup.mark_mint(sighting.mint)
            except Exception as e:
                logger.error("Failed to upsert token", token_mint=sighting.mint, error=str(e))

        stored_swaps = 0
        for swap in result.swaps:
            try:
                if await self.storage.insert_swap(swap):
                    stored_swaps += 1
                else:
                    result.duplicates += 1
            except Exception as e:
                logger.error(
                    "Failed to insert swap",
                    token_mint=swap.token_mint,
                    signature=swap.signature,
                    error=str(e),
                )

        for pool in result.pools:
            try:
                await self.storage.upsert_pool(
                    PoolRecord(
                        token_mint=pool.token_mint,
                        pool_address=pool.pool_address,
                        dex=pool.dex,
                        base_mint=pool.base_mint,
                        quote_mint=pool.quote_mint,
                        created_at=pool.created_at,
                        meta=pool.meta,
                    )
                )
            except Exception as e:
                logger.error(
                    "Failed to upsert pool",
                    token_mint=pool.token_mint,
                    pool_address=pool.pool_address,
                    error=str(e),
                )

        logger.info(
            "Payload ingested",
            records=len(records),
            tokens=len(result.sightings),
            swaps=stored_swaps,
            pools=len(result.pools),
            duplicates=result.duplicates,
            unrecognized=result.unrecognized,
        )
        return result
