"""Scoring tiers, penalties and risk flag floors.

Every tier table is ordered from the highest minimum to the lowest and is
evaluated top-down; the first tier whose minimum the value meets wins.
"""

from pydantic import BaseModel, ConfigDict


class Tier(BaseModel):
    """One step of a positive scoring table."""

    model_config = ConfigDict(frozen=True)

    min: float
    points: int
    reason: str


class PenaltyTier(BaseModel):
    """One step of a penalty table; a value strictly above ``above`` triggers it."""

    model_config = ConfigDict(frozen=True)

    above: float
    penalty: int
    reason: str


class AuthorityPenalty(BaseModel):
    """Penalty and risk flag for a retained token authority."""

    model_config = ConfigDict(frozen=True)

    penalty: int
    reason: str
    flag: str


# ============================================
# POSITIVE SCORING
# ============================================

LIQUIDITY_TIERS: tuple[Tier, ...] = (
    Tier(min=50000, points=25, reason="LIQ_50K_PLUS"),
    Tier(min=20000, points=18, reason="LIQ_20K_PLUS"),
    Tier(min=10000, points=12, reason="LIQ_10K_PLUS"),
    Tier(min=5000, points=6, reason="LIQ_5K_PLUS"),
    Tier(min=0, points=0, reason="LIQ_BELOW_5K"),
)

UNIQUE_BUYERS_1M_TIERS: tuple[Tier, ...] = (
    Tier(min=20, points=20, reason="BUYERS_1M_20_PLUS"),
    Tier(min=10, points=14, reason="BUYERS_1M_10_PLUS"),
    Tier(min=5, points=8, reason="BUYERS_1M_5_PLUS"),
    Tier(min=2, points=4, reason="BUYERS_1M_2_PLUS"),
    Tier(min=0, points=0, reason="BUYERS_1M_BELOW_2"),
)

SWAPS_1M_TIERS: tuple[Tier, ...] = (
    Tier(min=40, points=15, reason="SWAPS_1M_40_PLUS"),
    Tier(min=20, points=10, reason="SWAPS_1M_20_PLUS"),
    Tier(min=10, points=6, reason="SWAPS_1M_10_PLUS"),
    Tier(min=5, points=3, reason="SWAPS_1M_5_PLUS"),
    Tier(min=0, points=0, reason="SWAPS_1M_BELOW_5"),
)

VOLUME_1M_TIERS: tuple[Tier, ...] = (
    Tier(min=50000, points=10, reason="VOL_1M_50K_PLUS"),
    Tier(min=20000, points=7, reason="VOL_1M_20K_PLUS"),
    Tier(min=10000, points=4, reason="VOL_1M_10K_PLUS"),
    Tier(min=5000, points=2, reason="VOL_1M_5K_PLUS"),
    Tier(min=0, points=0, reason="VOL_1M_BELOW_5K"),
)

HOLDER_COUNT_TIERS: tuple[Tier, ...] = (
    Tier(min=200, points=10, reason="HOLDERS_200_PLUS"),
    Tier(min=100, points=7, reason="HOLDERS_100_PLUS"),
    Tier(min=50, points=4, reason="HOLDERS_50_PLUS"),
    Tier(min=20, points=2, reason="HOLDERS_20_PLUS"),
    Tier(min=0, points=0, reason="HOLDERS_BELOW_20"),
)

UNIQUE_BUYERS_5M_TIERS: tuple[Tier, ...] = (
    Tier(min=50, points=10, reason="BUYERS_5M_50_PLUS"),
    Tier(min=30, points=7, reason="BUYERS_5M_30_PLUS"),
    Tier(min=15, points=4, reason="BUYERS_5M_15_PLUS"),
    Tier(min=5, points=2, reason="BUYERS_5M_5_PLUS"),
    Tier(min=0, points=0, reason="BUYERS_5M_BELOW_5"),
)

# Share of 1m volume that was buys
BUY_PRESSURE_TIERS: tuple[Tier, ...] = (
    Tier(min=0.7, points=10, reason="BUY_PRESSURE_70_PCT"),
    Tier(min=0.6, points=7, reason="BUY_PRESSURE_60_PCT"),
    Tier(min=0.5, points=4, reason="BUY_PRESSURE_50_PCT"),
    Tier(min=0.4, points=2, reason="BUY_PRESSURE_40_PCT"),
    Tier(min=0, points=0, reason="SELL_PRESSURE"),
)
BUY_PRESSURE_NO_VOLUME = "BUY_PRESSURE_NO_VOLUME"

MAX_POINTS: dict[str, int] = {
    "liquidity": 25,
    "unique_buyers_1m": 20,
    "swaps_1m": 15,
    "volume_1m": 10,
    "holder_count": 10,
    "unique_buyers_5m": 10,
    "buy_pressure": 10,
}

# ============================================
# PENALTIES
# ============================================

TOP10_CONCENTRATION_PENALTIES: tuple[PenaltyTier, ...] = (
    PenaltyTier(above=80, penalty=-25, reason="TOP10_PCT_80_PLUS_PENALTY"),
    PenaltyTier(above=70, penalty=-18, reason="TOP10_PCT_70_PLUS_PENALTY"),
    PenaltyTier(above=60, penalty=-10, reason="TOP10_PCT_60_PLUS_PENALTY"),
    PenaltyTier(above=50, penalty=-5, reason="TOP10_PCT_50_PLUS_PENALTY"),
)
TOP10_HEALTHY = "TOP10_PCT_HEALTHY"

TOP1_CONCENTRATION_PENALTIES: tuple[PenaltyTier, ...] = (
    PenaltyTier(above=50, penalty=-15, reason="TOP1_PCT_50_PLUS_PENALTY"),
    PenaltyTier(above=30, penalty=-10, reason="TOP1_PCT_30_PLUS_PENALTY"),
    PenaltyTier(above=20, penalty=-5, reason="TOP1_PCT_20_PLUS_PENALTY"),
)
TOP1_HEALTHY = "TOP1_PCT_HEALTHY"

MINT_AUTHORITY = AuthorityPenalty(
    penalty=-10, reason="MINT_AUTHORITY_PRESENT", flag="MINT_AUTHORITY_RISK"
)
FREEZE_AUTHORITY = AuthorityPenalty(
    penalty=-10, reason="FREEZE_AUTHORITY_PRESENT", flag="FREEZE_AUTHORITY_RISK"
)
BOTH_AUTHORITIES = AuthorityPenalty(
    penalty=-20, reason="BOTH_AUTHORITIES_PRESENT", flag="FULL_AUTHORITY_RISK"
)

# Flags that hold back a first alert unless the score is very high
HARD_FLAGS = frozenset(
    {MINT_AUTHORITY.flag, FREEZE_AUTHORITY.flag, BOTH_AUTHORITIES.flag}
)

# ============================================
# RISK FLAGS (non-scoring)
# ============================================

LOW_LIQUIDITY_USD = 5000
LOW_LIQUIDITY_FLAG = "LOW_LIQUIDITY_WARNING"

NEW_TOKEN_MINUTES = 5
NEW_TOKEN_FLAG = "VERY_NEW_TOKEN"

LOW_HOLDERS = 10
LOW_HOLDERS_FLAG = "LOW_HOLDER_COUNT"

NO_VOLUME_USD = 0
NO_VOLUME_FLAG = "NO_RECENT_VOLUME"

WHALE_TOP1_PCT = 40
WHALE_FLAG = "WHALE_CONCENTRATION"

RAPID_PRICE_DROP_PCT = -30
RAPID_PRICE_DROP_FLAG = "RAPID_PRICE_DROP"

# ============================================
# SCORE INTERPRETATION
# ============================================

SCORE_LABELS: tuple[tuple[int, str], ...] = (
    (90, "Exceptional"),
    (80, "Very Strong"),
    (70, "Strong"),
    (60, "Moderate"),
    (50, "Weak"),
    (40, "Poor"),
    (0, "Very Poor"),
)


def tier_for(value: float, tiers: tuple[Tier, ...]) -> Tier:
    """First tier whose minimum the value meets, else the lowest tier."""
    for tier in tiers:
        if value >= tier.min:
            return tier
    return tiers[-1]


def penalty_for(value: float, tiers: tuple[PenaltyTier, ...]) -> PenaltyTier | None:
    """First penalty tier the value exceeds, or None when healthy."""
    for tier in tiers:
        if value > tier.above:
            return tier
    return None


def score_label(score: int) -> str:
    """Human label for a score."""
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return "Very Poor"
