"""Scoring worker: score active tokens and drive alerts."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ..alerts.state_machine import AlertDispatcher
from ..core.interfaces import Storage
from ..core.types import AlertAction, TokenRecord, TokenState
from ..metrics.aggregator import aggregate_swaps, build_metrics_snapshot
from ..scoring.engine import score
from .base import PeriodicWorker

logger = structlog.get_logger(__name__)


class ScoreWorker(PeriodicWorker):
    """Periodically scores active tokens and hands results to the dispatcher."""

    name = "score"

    def __init__(
        self,
        storage: Storage,
        dispatcher: AlertDispatcher,
        batch_size: int = 20,
        interval_seconds: float = 10.0,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize score worker.

        Args:
            storage: Storage collaborator
            dispatcher: Alert dispatcher run for every scored token
            batch_size: Tokens per batch
            interval_seconds: Sleep after each batch
            now_fn: Optional clock (for testing)
        """
        super().__init__(interval_seconds)
        self.storage = storage
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    async def run_once(self) -> dict[str, int]:
        """Score one batch of active tokens, one at a time.

        Returns:
            Counts of scored and alerted tokens
        """
        tokens = await self.storage.get_active_tokens(self.batch_size)
        if not tokens:
            logger.debug("No active tokens to score")
            return {"scored": 0, "alerted": 0}

        scored = 0
        alerted = 0
        for token in tokens:
            try:
                sent = await self.score_token(token)
                scored += 1
                if sent:
                    alerted += 1
            except Exception as e:
                logger.error("Failed to score token", token_mint=token.mint, error=str(e))

        logger.info("Score batch complete", scored=scored, alerted=alerted)
        return {"scored": scored, "alerted": alerted}

    async def score_token(self, token: TokenRecord) -> bool:
        """Score a token, store the result and run the alert state machine.

        Returns:
            True if the verdict was to send or update an alert
        """
        mint = token.mint
        now = self._now_fn()

        swaps, previous, holders, pools = await asyncio.gather(
            self.storage.get_swap_metrics(mint, now=now),
            self.storage.get_latest_token_metrics(mint),
            self.storage.get_latest_holder_snapshot(mint),
            self.storage.get_pools_for_token(mint),
        )

        metrics = build_metrics_snapshot(
            mint,
            aggregate_swaps(swaps, now=now),
            pools=pools,
            holders=holders,
            previous=previous,
            now=now,
        )
        pool = pools[0] if pools else None

        result = score(
            TokenState(token=token, metrics=metrics, holders=holders, pool=pool),
            now=now,
        )
        await self.storage.insert_score(mint, result)

        logger.debug(
            "Token scored",
            token_mint=mint,
            score=result.score,
            risk_flags=len(result.risk_flags),
        )

        verdict = await self.dispatcher.process(token, result, metrics, holders)
        return verdict.action != AlertAction.SUPPRESS

    async def score_token_by_mint(self, mint: str) -> bool:
        """Score a specific token on demand.

        Raises:
            LookupError: If the token is unknown
        """
        token = await self.storage.get_token(mint)
        if token is None:
            raise LookupError(f"Token not found: {mint}")
        return await self.score_token(token)
