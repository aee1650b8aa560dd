"""Core interfaces for the token radar."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from .types import (
    AlertState,
    HolderSnapshot,
    MetricsSnapshot,
    NormalizedSwap,
    PoolRecord,
    ScoreResult,
    TokenRecord,
    TokenStatus,
)


class Storage(Protocol):
    """Durable state owned by the storage collaborator."""

    # Tokens
    async def upsert_token(self, mint: str, meta: dict[str, Any] | None = None) -> None:
        """Create a token if missing, merging discovery metadata."""
        ...

    async def get_token(self, mint: str) -> TokenRecord | None:
        """Get a token by mint."""
        ...

    async def update_token_status(self, mint: str, status: TokenStatus) -> None:
        """Change a token's status."""
        ...

    async def get_tokens_to_enrich(
        self, limit: int, stale_seconds: int
    ) -> list[TokenRecord]:
        """Active tokens never enriched or enriched before the staleness window."""
        ...

    async def update_token_enrichment(self, mint: str, data: dict[str, Any]) -> None:
        """Store enrichment fields and bump last_enriched_at."""
        ...

    async def get_active_tokens(self, limit: int) -> list[TokenRecord]:
        """Most recently seen active tokens."""
        ...

    # Pools
    async def upsert_pool(self, pool: PoolRecord) -> None:
        """Insert or update a pool keyed by address."""
        ...

    async def get_pools_for_token(self, mint: str) -> list[PoolRecord]:
        """Pools for a token, newest first."""
        ...

    # Swaps
    async def insert_swap(self, swap: NormalizedSwap) -> bool:
        """Insert a swap; duplicate signatures are a no-op returning False."""
        ...

    async def get_swap_metrics(
        self, mint: str, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Raw swap rows in the trailing 15 minutes, newest first."""
        ...

    # Snapshots
    async def insert_holder_snapshot(self, mint: str, snapshot: HolderSnapshot) -> None:
        """Append a holder snapshot."""
        ...

    async def get_latest_holder_snapshot(self, mint: str) -> HolderSnapshot | None:
        """Latest holder snapshot."""
        ...

    async def insert_token_metrics(self, mint: str, metrics: MetricsSnapshot) -> None:
        """Append a metrics snapshot."""
        ...

    async def get_latest_token_metrics(self, mint: str) -> MetricsSnapshot | None:
        """Latest metrics snapshot."""
        ...

    # Scores
    async def insert_score(self, mint: str, result: ScoreResult) -> None:
        """Append a score."""
        ...

    async def get_latest_score(self, mint: str) -> ScoreResult | None:
        """Latest score."""
        ...

    async def get_top_scored_tokens(
        self, minutes: int, limit: int
    ) -> list[dict[str, Any]]:
        """Best score per token within the window."""
        ...

    # Alerts
    async def get_or_create_alert(self, mint: str) -> AlertState:
        """Alert state row for a token, created empty if missing."""
        ...

    async def update_alert(self, state: AlertState) -> None:
        """Persist alert state."""
        ...

    # Raw events
    async def store_raw_event(
        self, event_type: str, signature: str | None, payload: dict[str, Any]
    ) -> None:
        """Audit a raw event; never raises."""
        ...

    async def cleanup_old_data(self, days_to_keep: int = 7) -> dict[str, int]:
        """Prune rows older than the retention window; returns deleted counts per table."""
        ...

    async def health_check(self) -> bool:
        """Whether the backing store is reachable."""
        ...


class EnrichmentSource(Protocol):
    """External token data provider."""

    async def fetch_token_metadata(self, mint: str) -> dict[str, Any] | None:
        """Token name/symbol metadata."""
        ...

    async def fetch_token_info(self, mint: str) -> dict[str, Any] | None:
        """Mint/freeze authorities, decimals and supply."""
        ...

    async def fetch_token_holders(
        self, mint: str, limit: int = 20
    ) -> list[dict[str, Any]] | None:
        """Largest holder accounts, ranked."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Notification channel."""

    async def send(self, chat_id: str, text: str) -> str | None:
        """Send a message and return its handle."""
        ...

    async def edit(self, chat_id: str, message_id: str, text: str) -> bool:
        """Edit a sent message in place."""
        ...
