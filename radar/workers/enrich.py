"""Enrichment worker: metadata, authorities, holders and metrics."""

import asyncio
from typing import Any

import structlog

from ..core.interfaces import EnrichmentSource, Storage
from ..core.types import HolderSnapshot, PoolRecord, SwapWindowStats, TokenRecord
from ..metrics.aggregator import (
    aggregate_swaps,
    build_metrics_snapshot,
    holder_distribution,
)
from .base import PeriodicWorker

logger = structlog.get_logger(__name__)


def metadata_fields(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Extract name and symbol from a Helius metadata record.

    On-chain metadata wins; legacy token-list metadata fills the gaps.
    """
    if not metadata:
        return {}

    fields: dict[str, Any] = {}
    on_chain = (
        ((metadata.get("onChainMetadata") or {}).get("metadata") or {}).get("data")
        or {}
    )
    legacy = metadata.get("legacyMetadata") or {}

    name = on_chain.get("name") or legacy.get("name")
    symbol = on_chain.get("symbol") or legacy.get("symbol")
    if name:
        fields["name"] = name.strip("\x00").strip()
    if symbol:
        fields["symbol"] = symbol.strip("\x00").strip()
    return fields


class EnrichWorker(PeriodicWorker):
    """Periodically enriches stale or never-enriched active tokens."""

    name = "enrich"

    def __init__(
        self,
        storage: Storage,
        source: EnrichmentSource,
        batch_size: int = 10,
        interval_seconds: float = 15.0,
        stale_seconds: int = 30,
        concurrency: int = 5,
    ) -> None:
        """Initialize enrich worker.

        Args:
            storage: Storage collaborator
            source: Enrichment data source
            batch_size: Tokens per batch
            interval_seconds: Sleep after each batch
            stale_seconds: Age after which an enrichment is refreshed
            concurrency: Maximum tokens enriched at once
        """
        super().__init__(interval_seconds)
        self.storage = storage
        self.source = source
        self.batch_size = batch_size
        self.stale_seconds = stale_seconds
        self._semaphore = asyncio.Semaphore(concurrency)

    async def run_once(self) -> dict[str, int]:
        """Enrich one batch.

        Returns:
            Counts of succeeded and failed tokens
        """
        tokens = await self.storage.get_tokens_to_enrich(
            self.batch_size, self.stale_seconds
        )
        if not tokens:
            logger.debug("No tokens to enrich")
            return {"succeeded": 0, "failed": 0}

        logger.info("Enriching tokens", count=len(tokens))
        results = await asyncio.gather(
            *(self._enrich_bounded(token) for token in tokens),
            return_exceptions=True,
        )

        failed = 0
        for token, result in zip(tokens, results, strict=True):
            if isinstance(result, Exception):
                failed += 1
                logger.error("Token enrichment failed", token_mint=token.mint, error=str(result))

        summary = {"succeeded": len(tokens) - failed, "failed": failed}
        logger.info("Enrich batch complete", **summary)
        return summary

    async def _enrich_bounded(self, token: TokenRecord) -> None:
        async with self._semaphore:
            await self.enrich_token(token)

    async def enrich_token(self, token: TokenRecord) -> None:
        """Enrich a single token.

        Each step is isolated; failures are collected into the token's
        ``meta.last_enrich_errors`` and the remaining steps still run.
        """
        mint = token.mint
        data: dict[str, Any] = {}
        errors: list[str] = []

        try:
            data.update(metadata_fields(await self.source.fetch_token_metadata(mint)))
        except Exception as e:
            errors.append(f"metadata: {e}")

        try:
            info = await self.source.fetch_token_info(mint)
            if info:
                data.update(info)
        except Exception as e:
            errors.append(f"tokenInfo: {e}")

        holders: HolderSnapshot | None = None
        try:
            accounts = await self.source.fetch_token_holders(mint)
            if accounts:
                holders = holder_distribution(accounts)
                await self.storage.insert_holder_snapshot(mint, holders)
        except Exception as e:
            errors.append(f"holders: {e}")

        stats: SwapWindowStats | None = None
        try:
            stats = aggregate_swaps(await self.storage.get_swap_metrics(mint))
        except Exception as e:
            errors.append(f"swapMetrics: {e}")

        pools: list[PoolRecord] = []
        try:
            pools = await self.storage.get_pools_for_token(mint)
        except Exception as e:
            errors.append(f"pools: {e}")

        if stats is not None or holders is not None or pools:
            try:
                snapshot = build_metrics_snapshot(
                    mint, stats or SwapWindowStats(), pools=pools, holders=holders
                )
                await self.storage.insert_token_metrics(mint, snapshot)
            except Exception as e:
                errors.append(f"insertMetrics: {e}")

        data["meta"] = {
            "last_enrich_errors": errors or None,
            "enrich_count": int(token.meta.get("enrich_count", 0)) + 1,
        }
        await self.storage.update_token_enrichment(mint, data)

        if errors:
            logger.warning("Token enriched with errors", token_mint=mint, errors=errors)
        else:
            logger.debug("Token enriched", token_mint=mint)
