"""Deterministic token scoring."""

from datetime import UTC, datetime

import structlog

from ..core.types import ScoreComponent, ScoreResult, TokenState
from . import rules
from .rules import Tier

logger = structlog.get_logger(__name__)


def _positive(
    name: str,
    value: float,
    tiers: tuple[Tier, ...],
    components: dict[str, ScoreComponent],
    reasons: list[str],
) -> int:
    tier = rules.tier_for(value, tiers)
    components[name] = ScoreComponent(
        value=value,
        points=tier.points,
        max_points=rules.MAX_POINTS[name],
        reason=tier.reason,
    )
    reasons.append(tier.reason)
    return tier.points


def _concentration(
    name: str,
    value: float,
    tiers: tuple[rules.PenaltyTier, ...],
    healthy_reason: str,
    components: dict[str, ScoreComponent],
    reasons: list[str],
) -> int:
    tier = rules.penalty_for(value, tiers)
    penalty = tier.penalty if tier else 0
    reason = tier.reason if tier else healthy_reason
    components[name] = ScoreComponent(value=value, points=penalty, reason=reason)
    if penalty < 0:
        reasons.append(reason)
    return penalty


def score(state: TokenState, now: datetime | None = None) -> ScoreResult:
    """Score a token from its current state.

    The result depends only on ``state``; ``now`` is used solely for the
    token-age risk flag.

    Args:
        state: Token record with metrics, holder snapshot and pool
        now: Reference time for the token-age flag

    Returns:
        Score in [0, 100] with ordered reasons, risk flags and components
    """
    token, metrics, holders, pool = state.token, state.metrics, state.holders, state.pool

    components: dict[str, ScoreComponent] = {}
    reasons: list[str] = []
    risk_flags: list[str] = []
    total = 0.0

    # Positive components
    liquidity_usd = (
        (metrics.liquidity_usd if metrics else None)
        or (pool.liquidity_usd if pool else None)
        or 0.0
    )
    total += _positive(
        "liquidity", liquidity_usd, rules.LIQUIDITY_TIERS, components, reasons
    )

    buyers_1m = metrics.unique_buyers_1m if metrics else 0
    total += _positive(
        "unique_buyers_1m",
        buyers_1m,
        rules.UNIQUE_BUYERS_1M_TIERS,
        components,
        reasons,
    )

    swaps_1m = metrics.swaps_1m if metrics else 0
    total += _positive("swaps_1m", swaps_1m, rules.SWAPS_1M_TIERS, components, reasons)

    volume_1m = metrics.volume_usd_1m if metrics else 0.0
    total += _positive(
        "volume_1m", volume_1m, rules.VOLUME_1M_TIERS, components, reasons
    )

    holder_count = (
        (holders.holder_count if holders else None)
        or (metrics.holder_count if metrics else None)
        or 0
    )
    total += _positive(
        "holder_count", holder_count, rules.HOLDER_COUNT_TIERS, components, reasons
    )

    buyers_5m = metrics.unique_buyers_5m if metrics else 0
    total += _positive(
        "unique_buyers_5m",
        buyers_5m,
        rules.UNIQUE_BUYERS_5M_TIERS,
        components,
        reasons,
    )

    buy_volume = metrics.buy_volume_usd_1m if metrics else 0.0
    sell_volume = metrics.sell_volume_usd_1m if metrics else 0.0
    side_volume = buy_volume + sell_volume
    if side_volume > 0:
        total += _positive(
            "buy_pressure",
            buy_volume / side_volume,
            rules.BUY_PRESSURE_TIERS,
            components,
            reasons,
        )
    else:
        # Neutral ratio, but pressure without volume earns nothing
        components["buy_pressure"] = ScoreComponent(
            value=0.5,
            points=0,
            max_points=rules.MAX_POINTS["buy_pressure"],
            reason=rules.BUY_PRESSURE_NO_VOLUME,
        )
        reasons.append(rules.BUY_PRESSURE_NO_VOLUME)

    # Penalties
    top10_pct = holders.top10_pct if holders else 0.0
    if top10_pct > 0:
        total += _concentration(
            "top10_concentration",
            top10_pct,
            rules.TOP10_CONCENTRATION_PENALTIES,
            rules.TOP10_HEALTHY,
            components,
            reasons,
        )

    top1_pct = holders.top1_pct if holders else 0.0
    if top1_pct > 0:
        total += _concentration(
            "top1_concentration",
            top1_pct,
            rules.TOP1_CONCENTRATION_PENALTIES,
            rules.TOP1_HEALTHY,
            components,
            reasons,
        )

    has_mint_auth = bool(token.mint_authority)
    has_freeze_auth = bool(token.freeze_authority)
    authority: rules.AuthorityPenalty | None = None
    if has_mint_auth and has_freeze_auth:
        authority = rules.BOTH_AUTHORITIES
    elif has_mint_auth:
        authority = rules.MINT_AUTHORITY
    elif has_freeze_auth:
        authority = rules.FREEZE_AUTHORITY

    if authority is not None:
        components["authority"] = ScoreComponent(
            value=int(has_mint_auth) + int(has_freeze_auth),
            points=authority.penalty,
            reason=authority.reason,
        )
        total += authority.penalty
        reasons.append(authority.reason)
        risk_flags.append(authority.flag)

    # Non-scoring risk flags
    if liquidity_usd < rules.LOW_LIQUIDITY_USD:
        risk_flags.append(rules.LOW_LIQUIDITY_FLAG)

    if token.first_seen_at is not None:
        now = now or datetime.now(UTC)
        first_seen = token.first_seen_at
        if first_seen.tzinfo is None:
            first_seen = first_seen.replace(tzinfo=UTC)
        age_minutes = (now - first_seen).total_seconds() / 60
        if age_minutes < rules.NEW_TOKEN_MINUTES:
            risk_flags.append(rules.NEW_TOKEN_FLAG)

    if holder_count < rules.LOW_HOLDERS:
        risk_flags.append(rules.LOW_HOLDERS_FLAG)

    if volume_1m <= rules.NO_VOLUME_USD:
        risk_flags.append(rules.NO_VOLUME_FLAG)

    if top1_pct > rules.WHALE_TOP1_PCT:
        risk_flags.append(rules.WHALE_FLAG)

    price_change_5m = (metrics.price_change_5m if metrics else None) or 0.0
    if price_change_5m < rules.RAPID_PRICE_DROP_PCT:
        risk_flags.append(rules.RAPID_PRICE_DROP_FLAG)

    final_score = max(0, min(100, round(total)))

    logger.debug(
        "Token scored",
        token_mint=token.mint,
        score=final_score,
        raw_total=total,
        risk_flags=risk_flags,
    )

    return ScoreResult(
        score=final_score,
        reasons=tuple(reasons),
        risk_flags=tuple(risk_flags),
        components=components,
    )
