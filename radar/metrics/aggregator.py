"""Rolling swap aggregation and holder distribution."""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from ..core.types import (
    HolderSnapshot,
    MetricsSnapshot,
    PoolRecord,
    SwapSide,
    SwapWindowStats,
)

logger = structlog.get_logger(__name__)

WINDOW_1M = timedelta(minutes=1)
WINDOW_5M = timedelta(minutes=5)
WINDOW_15M = timedelta(minutes=15)


def _parse_ts(value: Any) -> datetime | None:
    """Coerce a stored timestamp into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, int | float):
        ts = datetime.fromtimestamp(value, UTC)
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def _amount(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def aggregate_swaps(
    swaps: Iterable[Mapping[str, Any]], now: datetime | None = None
) -> SwapWindowStats:
    """Compute 1/5/15 minute swap statistics in one pass.

    Rows are expected to already be limited to the trailing 15 minutes;
    every row counts towards the 15 minute totals. Order does not matter.

    Args:
        swaps: Swap rows with ts, side, amount_usd, buyer and seller
        now: Reference time for the window cutoffs

    Returns:
        Aggregated statistics, all zero when there are no swaps
    """
    now = now or datetime.now(UTC)
    cutoff_1m = now - WINDOW_1M
    cutoff_5m = now - WINDOW_5M

    stats = SwapWindowStats()
    buyers_1m: set[str] = set()
    buyers_5m: set[str] = set()
    buyers_15m: set[str] = set()
    sellers_1m: set[str] = set()
    sellers_5m: set[str] = set()

    for swap in swaps:
        ts = _parse_ts(swap.get("ts"))
        volume = _amount(swap.get("amount_usd"))
        buyer = swap.get("buyer")
        seller = swap.get("seller")
        side = swap.get("side")

        stats.swaps_15m += 1
        stats.volume_usd_15m += volume
        if buyer:
            buyers_15m.add(buyer)

        if ts is None or ts < cutoff_5m:
            continue

        stats.swaps_5m += 1
        stats.volume_usd_5m += volume
        if buyer:
            buyers_5m.add(buyer)
        if seller:
            sellers_5m.add(seller)

        if ts < cutoff_1m:
            continue

        stats.swaps_1m += 1
        stats.volume_usd_1m += volume
        if buyer:
            buyers_1m.add(buyer)
        if seller:
            sellers_1m.add(seller)
        if side == SwapSide.BUY.value:
            stats.buy_volume_usd_1m += volume
        elif side == SwapSide.SELL.value:
            stats.sell_volume_usd_1m += volume

    stats.unique_buyers_1m = len(buyers_1m)
    stats.unique_buyers_5m = len(buyers_5m)
    stats.unique_buyers_15m = len(buyers_15m)
    stats.unique_sellers_1m = len(sellers_1m)
    stats.unique_sellers_5m = len(sellers_5m)

    return stats


def _holding(account: Mapping[str, Any]) -> float:
    return _amount(account.get("uiAmount") or account.get("amount") or 0)


def holder_distribution(accounts: list[Mapping[str, Any]] | None) -> HolderSnapshot:
    """Concentration of the largest sampled holder accounts.

    Percentages are relative to the sum of the sampled holdings, an estimate
    rather than true circulating supply.
    """
    if not accounts:
        return HolderSnapshot()

    ranked = sorted(accounts, key=_holding, reverse=True)
    total = sum(_holding(a) for a in ranked)

    if total == 0:
        return HolderSnapshot(holder_count=len(ranked))

    def top_pct(n: int) -> float:
        return sum(_holding(a) for a in ranked[:n]) / total * 100

    return HolderSnapshot(
        holder_count=len(ranked),
        top1_pct=top_pct(1),
        top5_pct=top_pct(5),
        top10_pct=top_pct(10),
        top20_pct=top_pct(20),
        meta={
            "total_from_top": total,
            "top_holders": [
                {
                    "address": a.get("address"),
                    "amount": a.get("uiAmount") or a.get("amount"),
                }
                for a in ranked[:5]
            ],
        },
    )


def best_pool(pools: list[PoolRecord]) -> PoolRecord | None:
    """Pool with the highest USD liquidity, if any reports liquidity."""
    best: PoolRecord | None = None
    for pool in pools:
        if (pool.liquidity_usd or 0) > ((best.liquidity_usd or 0) if best else 0):
            best = pool
    return best


def build_metrics_snapshot(
    mint: str,
    stats: SwapWindowStats,
    pools: list[PoolRecord] | None = None,
    holders: HolderSnapshot | None = None,
    previous: MetricsSnapshot | None = None,
    now: datetime | None = None,
) -> MetricsSnapshot:
    """Combine fresh swap aggregates with liquidity, holder and price context.

    Liquidity comes from the most liquid pool, falling back to the previous
    snapshot; price change is carried over from the previous snapshot.
    """
    pool = best_pool(pools or [])

    liquidity_usd = pool.liquidity_usd if pool else None
    liquidity_sol = pool.liquidity_sol if pool else None
    if liquidity_usd is None and previous is not None:
        liquidity_usd = previous.liquidity_usd
        liquidity_sol = previous.liquidity_sol

    holder_count = holders.holder_count if holders else None
    if holder_count is None and previous is not None:
        holder_count = previous.holder_count

    return MetricsSnapshot(
        **stats.model_dump(),
        token_mint=mint,
        ts=now or datetime.now(UTC),
        price_change_5m=previous.price_change_5m if previous else None,
        liquidity_usd=liquidity_usd,
        liquidity_sol=liquidity_sol,
        holder_count=holder_count,
    )
