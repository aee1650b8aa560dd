"""Telegram message rendering (HTML parse mode)."""

from datetime import UTC, datetime
from html import escape
from typing import Any

from ..core.types import (
    HolderSnapshot,
    MetricsSnapshot,
    PoolRecord,
    ScoreResult,
    TokenRecord,
)
from ..scoring.rules import score_label

RISK_FLAG_LABELS = {
    "MINT_AUTHORITY_RISK": "🔴 Mint Authority Present",
    "FREEZE_AUTHORITY_RISK": "🔴 Freeze Authority Present",
    "FULL_AUTHORITY_RISK": "🔴 Full Authority Risk",
    "LOW_LIQUIDITY_WARNING": "⚠️ Low Liquidity",
    "VERY_NEW_TOKEN": "⚠️ Very New Token",
    "LOW_HOLDER_COUNT": "⚠️ Low Holder Count",
    "NO_RECENT_VOLUME": "⚠️ No Recent Volume",
    "WHALE_CONCENTRATION": "🐋 Whale Concentration",
    "RAPID_PRICE_DROP": "📉 Rapid Price Drop",
}


def format_number(num: float | None, decimals: int = 1) -> str:
    """Format a number with K/M suffix."""
    if num is None:
        return "N/A"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.{decimals}f}M"
    if num >= 1_000:
        return f"{num / 1_000:.{decimals}f}K"
    return f"{num:.{decimals}f}"


def format_usd(amount: float | None) -> str:
    if amount is None:
        return "N/A"
    return f"${format_number(amount)}"


def format_pct(pct: float | None) -> str:
    if pct is None:
        return "N/A"
    return f"{pct:.1f}%"


def format_relative(ts: datetime | None, now: datetime | None = None) -> str:
    """Relative time such as '2m ago'."""
    if ts is None:
        return "unknown"
    now = now or datetime.now(UTC)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)

    seconds = (now - ts).total_seconds()
    if seconds < 0:
        return "in future"
    if seconds < 60:
        return f"{int(seconds)}s ago"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


def score_emoji(score: int) -> str:
    if score >= 90:
        return "🔥"
    if score >= 80:
        return "🚀"
    if score >= 70:
        return "✅"
    if score >= 60:
        return "📈"
    if score >= 50:
        return "⚠️"
    return "❌"


def format_risk_flag(flag: str) -> str:
    return RISK_FLAG_LABELS.get(flag, flag)


def _risk_lines(flags: tuple[str, ...] | list[str]) -> list[str]:
    if not flags:
        return []
    return ["", "⚠️ <b>Risk Flags:</b>", *(f"• {format_risk_flag(f)}" for f in flags)]


def _link_lines(mint: str) -> list[str]:
    return [
        "",
        "🔗 <b>Links:</b>",
        f'• <a href="https://birdeye.so/token/{mint}?chain=solana">Birdeye</a>',
        f'• <a href="https://dexscreener.com/solana/{mint}">DexScreener</a>',
        f'• <a href="https://solscan.io/token/{mint}">Solscan</a>',
    ]


def format_new_token_alert(
    token: TokenRecord,
    result: ScoreResult,
    metrics: MetricsSnapshot | None,
    holders: HolderSnapshot | None,
) -> str:
    """Message for a token's first alert."""
    emoji = score_emoji(result.score)
    lines = [
        f"{emoji} <b>NEW ALERT</b> {emoji}",
        "",
        f"<b>Token:</b> <code>{escape(token.symbol or 'Unknown')}</code>",
        f"<b>Name:</b> {escape(token.name or 'Unknown')}",
        f"<b>Mint:</b> <code>{token.mint}</code>",
        "",
        f"<b>SCORE: {result.score}/100</b> ({score_label(result.score)})",
        "",
        "📊 <b>Metrics (1m):</b>",
        f"• Swaps: {metrics.swaps_1m if metrics else 0}",
        f"• Unique Buyers: {metrics.unique_buyers_1m if metrics else 0}",
        f"• Volume: {format_usd(metrics.volume_usd_1m if metrics else None)}",
        "",
        "💰 <b>Liquidity:</b>",
        f"• USD: {format_usd(metrics.liquidity_usd if metrics else None)}",
        "",
        "👥 <b>Holders:</b>",
        f"• Count: {holders.holder_count if holders else 'N/A'}",
        f"• Top 10%: {format_pct(holders.top10_pct if holders else None)}",
    ]
    lines.extend(_risk_lines(result.risk_flags))
    lines.extend(_link_lines(token.mint))
    lines.append("")
    lines.append(f"<i>First seen: {format_relative(token.first_seen_at)}</i>")
    return "\n".join(lines)


def format_update_alert(
    token: TokenRecord,
    result: ScoreResult,
    previous_score: int | None,
    metrics: MetricsSnapshot | None,
) -> str:
    """Message replacing an earlier alert after a significant change."""
    previous_score = previous_score if previous_score is not None else 0
    diff = result.score - previous_score
    diff_emoji = "📈" if diff > 0 else "📉"
    diff_text = f"+{diff}" if diff > 0 else f"{diff}"

    lines = [
        f"{score_emoji(result.score)} <b>SCORE UPDATE</b> {diff_emoji}",
        "",
        f"<b>Token:</b> <code>{escape(token.symbol or 'Unknown')}</code>",
        f"<b>Mint:</b> <code>{token.mint}</code>",
        "",
        f"<b>SCORE: {result.score}/100</b> ({score_label(result.score)})",
        f"<b>Change:</b> {diff_text} (was {previous_score})",
        "",
        "📊 <b>Current Metrics (1m):</b>",
        f"• Swaps: {metrics.swaps_1m if metrics else 0}",
        f"• Unique Buyers: {metrics.unique_buyers_1m if metrics else 0}",
        f"• Volume: {format_usd(metrics.volume_usd_1m if metrics else None)}",
        f"• Liquidity: {format_usd(metrics.liquidity_usd if metrics else None)}",
    ]
    lines.extend(_risk_lines(result.risk_flags))
    lines.append("")
    lines.append(f"<i>Updated: {datetime.now(UTC).strftime('%H:%M:%S')} UTC</i>")
    return "\n".join(lines)


def format_token_status(
    token: TokenRecord,
    result: ScoreResult | None,
    metrics: MetricsSnapshot | None,
    holders: HolderSnapshot | None,
    pool: PoolRecord | None,
) -> str:
    """Detailed status reply for the /status command."""
    result = result or ScoreResult(score=0)
    liquidity_usd = (metrics.liquidity_usd if metrics else None) or (
        pool.liquidity_usd if pool else None
    )
    liquidity_sol = (metrics.liquidity_sol if metrics else None) or (
        pool.liquidity_sol if pool else None
    )

    lines = [
        f"{score_emoji(result.score)} <b>Token Status</b>",
        "",
        f"<b>Token:</b> <code>{escape(token.symbol or 'Unknown')}</code>",
        f"<b>Name:</b> {escape(token.name or 'Unknown')}",
        f"<b>Mint:</b> <code>{token.mint}</code>",
        f"<b>Status:</b> {token.status.value}",
        "",
        f"<b>SCORE: {result.score}/100</b> ({score_label(result.score)})",
        "",
        "📊 <b>Metrics:</b>",
        f"• Swaps 1m/5m: {metrics.swaps_1m if metrics else 0}"
        f"/{metrics.swaps_5m if metrics else 0}",
        f"• Buyers 1m/5m: {metrics.unique_buyers_1m if metrics else 0}"
        f"/{metrics.unique_buyers_5m if metrics else 0}",
        f"• Volume 1m/5m: {format_usd(metrics.volume_usd_1m if metrics else None)}"
        f"/{format_usd(metrics.volume_usd_5m if metrics else None)}",
        "",
        "💰 <b>Liquidity:</b>",
        f"• USD: {format_usd(liquidity_usd)}",
        f"• SOL: {liquidity_sol if liquidity_sol is not None else 'N/A'}",
    ]
    if pool:
        lines.append(f"• DEX: {escape(pool.dex)}")

    lines.extend(
        [
            "",
            "👥 <b>Holders:</b>",
            f"• Count: {holders.holder_count if holders else 'N/A'}",
            f"• Top 1%: {format_pct(holders.top1_pct if holders else None)}",
            f"• Top 10%: {format_pct(holders.top10_pct if holders else None)}",
            "",
            "🔐 <b>Authorities:</b>",
            f"• Mint: {'⚠️ Present' if token.mint_authority else '✅ Revoked'}",
            f"• Freeze: {'⚠️ Present' if token.freeze_authority else '✅ Revoked'}",
        ]
    )
    lines.extend(_risk_lines(result.risk_flags))

    if result.reasons:
        lines.append("")
        lines.append("📋 <b>Score Breakdown:</b>")
        lines.extend(f"• {reason}" for reason in result.reasons[:8])

    lines.extend(_link_lines(token.mint))
    lines.append("")
    lines.append(f"<i>First seen: {format_relative(token.first_seen_at)}</i>")
    lines.append(f"<i>Last enriched: {format_relative(token.last_enriched_at)}</i>")
    return "\n".join(lines)


def format_top_tokens(rows: list[dict[str, Any]]) -> str:
    """Top scored tokens list for the /top command."""
    if not rows:
        return "📊 <b>Top Tokens</b>\n\nNo tokens found in the last 30 minutes."

    lines = ["📊 <b>Top Scored Tokens (30m)</b>", ""]
    for i, row in enumerate(rows, start=1):
        symbol = escape(row.get("symbol") or "Unknown")
        score = row["score"]
        lines.append(f"{i}. {score_emoji(score)} <b>{score}</b> - <code>{symbol}</code>")
        lines.append(f"   <code>{row['token_mint']}</code>")
        flags = row.get("risk_flags") or []
        if flags:
            lines.append(f"   ⚠️ {len(flags)} risk flag(s)")
        lines.append("")
    return "\n".join(lines)


def format_error(message: str) -> str:
    return f"❌ <b>Error</b>\n\n{escape(message)}"


def format_success(message: str) -> str:
    return f"✅ {escape(message)}"
