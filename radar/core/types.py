"""Core data types for the token radar."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SwapSide(str, Enum):
    """Direction of a swap relative to the fee payer."""

    BUY = "buy"
    SELL = "sell"
    UNKNOWN = "unknown"


class TokenStatus(str, Enum):
    """Lifecycle status of a tracked token."""

    ACTIVE = "active"
    IGNORED = "ignored"
    DEAD = "dead"
    SCAM = "scam"


class EventType(str, Enum):
    """Classification of a raw transaction record."""

    SWAP = "SWAP"
    CREATE_POOL = "CREATE_POOL"
    INITIALIZE_POOL = "INITIALIZE_POOL"
    TRANSFER = "TRANSFER"
    TOKEN_MINT = "TOKEN_MINT"
    UNKNOWN = "UNKNOWN"


# ============================================
# NORMALIZED EVENTS
# ============================================


class NormalizedSwap(BaseModel):
    """Canonical swap record extracted from a transaction."""

    kind: Literal["swap"] = "swap"
    token_mint: str = Field(description="Subject token mint (never a quote asset)")
    signature: str | None = Field(default=None, description="Transaction signature")
    ts: datetime = Field(description="Swap timestamp")
    side: SwapSide = Field(default=SwapSide.UNKNOWN, description="Swap side")
    amount_usd: float | None = Field(default=None, description="Amount in USD")
    amount_token: float | None = Field(default=None, description="Subject token amount")
    amount_sol: float | None = Field(default=None, description="Quote amount in SOL")
    buyer: str | None = Field(default=None, description="Buyer wallet")
    seller: str | None = Field(default=None, description="Seller wallet")
    pool_address: str | None = Field(default=None, description="Pool address")
    meta: dict[str, Any] = Field(default_factory=dict, description="Provenance")


class NormalizedPoolCreation(BaseModel):
    """Canonical pool creation record."""

    kind: Literal["pool"] = "pool"
    token_mint: str = Field(description="Base (subject) token mint")
    pool_address: str | None = Field(default=None, description="Pool address")
    dex: str = Field(default="unknown", description="DEX venue label")
    base_mint: str | None = Field(default=None, description="Base mint")
    quote_mint: str | None = Field(default=None, description="Quote mint")
    created_at: datetime = Field(description="Pool creation time")
    meta: dict[str, Any] = Field(default_factory=dict, description="Provenance")


class TokenSighting(BaseModel):
    """A token mint observed in a transaction."""

    kind: Literal["sighting"] = "sighting"
    mint: str = Field(description="Token mint")
    source: str = Field(description="Where the mint was observed")


class Unrecognized(BaseModel):
    """A record that yielded no usable token information."""

    kind: Literal["unrecognized"] = "unrecognized"
    signature: str | None = None
    event_type: str = EventType.UNKNOWN.value


NormalizedEvent = NormalizedSwap | NormalizedPoolCreation | TokenSighting | Unrecognized


# ============================================
# STORED ENTITIES
# ============================================


class TokenRecord(BaseModel):
    """Long-lived token entity keyed by mint."""

    mint: str = Field(description="Token mint address")
    name: str | None = None
    symbol: str | None = None
    status: TokenStatus = TokenStatus.ACTIVE
    first_seen_at: datetime | None = None
    last_enriched_at: datetime | None = None
    mint_authority: str | None = None
    freeze_authority: str | None = None
    decimals: int | None = None
    supply: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class PoolRecord(BaseModel):
    """Liquidity pool for a token."""

    token_mint: str
    pool_address: str | None = None
    dex: str = "unknown"
    base_mint: str | None = None
    quote_mint: str | None = None
    created_at: datetime | None = None
    liquidity_usd: float | None = None
    liquidity_sol: float | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class SwapWindowStats(BaseModel):
    """Rolling swap aggregates over 1/5/15 minute windows."""

    swaps_1m: int = 0
    swaps_5m: int = 0
    swaps_15m: int = 0
    unique_buyers_1m: int = 0
    unique_buyers_5m: int = 0
    unique_buyers_15m: int = 0
    unique_sellers_1m: int = 0
    unique_sellers_5m: int = 0
    volume_usd_1m: float = 0.0
    volume_usd_5m: float = 0.0
    volume_usd_15m: float = 0.0
    buy_volume_usd_1m: float = 0.0
    sell_volume_usd_1m: float = 0.0


class MetricsSnapshot(SwapWindowStats):
    """Swap aggregates plus liquidity, price and holder context."""

    token_mint: str | None = None
    ts: datetime | None = None
    price_change_5m: float | None = None
    liquidity_usd: float | None = None
    liquidity_sol: float | None = None
    holder_count: int | None = None


class HolderSnapshot(BaseModel):
    """Point-in-time concentration of the largest sampled holders."""

    token_mint: str | None = None
    ts: datetime | None = None
    holder_count: int = 0
    top1_pct: float = 0.0
    top5_pct: float = 0.0
    top10_pct: float = 0.0
    top20_pct: float = 0.0
    meta: dict[str, Any] = Field(default_factory=dict)


class TokenState(BaseModel):
    """Everything the scoring engine looks at for one token."""

    token: TokenRecord
    metrics: MetricsSnapshot | None = None
    holders: HolderSnapshot | None = None
    pool: PoolRecord | None = None


# ============================================
# SCORING AND ALERTING
# ============================================


class ScoreComponent(BaseModel):
    """Contribution of a single scoring factor."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(description="Input value the tier was chosen from")
    points: float = Field(description="Signed contribution to the score")
    max_points: float | None = Field(default=None, description="Cap for positives")
    reason: str = Field(description="Reason code")


class ScoreResult(BaseModel):
    """Immutable output of one scoring cycle."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100, description="Final score 0-100")
    reasons: tuple[str, ...] = Field(default=(), description="Ordered reason codes")
    risk_flags: tuple[str, ...] = Field(default=(), description="Risk flag codes")
    components: dict[str, ScoreComponent] = Field(default_factory=dict)


class AlertState(BaseModel):
    """Per-token alert bookkeeping."""

    token_mint: str
    last_score: int | None = None
    last_sent_at: datetime | None = None
    message_id: str | None = None
    chat_id: str | None = None
    alert_count: int = 0
    last_risk_flags: list[str] = Field(default_factory=list)


class AlertAction(str, Enum):
    """Outcome of the alert transition function."""

    SEND = "send"
    UPDATE = "update"
    SUPPRESS = "suppress"


class AlertVerdict(BaseModel):
    """Alert decision with the code that explains it."""

    model_config = ConfigDict(frozen=True)

    action: AlertAction
    reason: str


class AlertThresholds(BaseModel):
    """Tuning constants for the alert state machine."""

    model_config = ConfigDict(frozen=True)

    score_threshold: int = 70
    score_threshold_with_flags: int = 80
    score_change_threshold: int = 10


class DedupCapacities(BaseModel):
    """Capacity of each deduplication key space."""

    model_config = ConfigDict(frozen=True)

    signatures: int = Field(default=50000, gt=0)
    mints: int = Field(default=10000, gt=0)
    events: int = Field(default=20000, gt=0)
