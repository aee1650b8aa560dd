"""Fixed-interval background worker loop."""

import asyncio

import structlog

logger = structlog.get_logger(__name__)


class PeriodicWorker:
    """Runs ``run_once`` repeatedly with a fixed sleep after each batch.

    Batches never overlap: the next one starts only after the previous
    batch finished and the interval elapsed. ``stop`` lets an in-flight
    batch complete before returning.
    """

    name = "worker"

    def __init__(self, interval_seconds: float) -> None:
        self.interval_seconds = interval_seconds
        self.running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.cycle_count = 0

    async def run_once(self) -> None:
        """Process one batch."""
        raise NotImplementedError

    async def run_forever(self) -> None:
        """Loop until stopped; a failing batch is logged and the loop continues."""
        logger.info("Worker started", worker=self.name, interval=self.interval_seconds)
        self.running = not self._stop_event.is_set()

        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Worker batch error", worker=self.name, error=str(e))

            self.cycle_count += 1
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
            except TimeoutError:
                pass

        logger.info("Worker stopped", worker=self.name, cycles=self.cycle_count)

    def start(self) -> asyncio.Task:
        """Run the loop as a background task."""
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        """Request shutdown and wait for the current batch to drain."""
        logger.info("Worker stopping", worker=self.name)
        self.running = False
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
