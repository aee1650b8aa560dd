"""Persistence storage using SQLite."""

import json
import sqlite3
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import structlog

from ..core.interfaces import Storage
from ..core.types import (
    AlertState,
    HolderSnapshot,
    MetricsSnapshot,
    NormalizedSwap,
    PoolRecord,
    ScoreResult,
    TokenRecord,
    TokenStatus,
)

logger = structlog.get_logger(__name__)

# Columns update_token_enrichment may overwrite
ENRICHMENT_COLUMNS = (
    "name",
    "symbol",
    "mint_authority",
    "freeze_authority",
    "decimals",
    "supply",
)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tokens (
        mint TEXT PRIMARY KEY,
        name TEXT,
        symbol TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        first_seen_at REAL NOT NULL,
        last_enriched_at REAL,
        mint_authority TEXT,
        freeze_authority TEXT,
        decimals INTEGER,
        supply TEXT,
        meta TEXT NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pools (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_mint TEXT NOT NULL,
        pool_address TEXT NOT NULL DEFAULT '',
        dex TEXT NOT NULL,
        base_mint TEXT,
        quote_mint TEXT,
        created_at REAL,
        liquidity_usd REAL,
        liquidity_sol REAL,
        meta TEXT NOT NULL DEFAULT '{}',
        UNIQUE(token_mint, pool_address)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS swaps (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_mint TEXT NOT NULL,
        signature TEXT UNIQUE,
        ts REAL NOT NULL,
        side TEXT NOT NULL,
        amount_usd REAL,
        amount_token REAL,
        amount_sol REAL,
        buyer TEXT,
        seller TEXT,
        pool_address TEXT,
        meta TEXT NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS holder_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_mint TEXT NOT NULL,
        ts REAL NOT NULL,
        holder_count INTEGER NOT NULL,
        top1_pct REAL NOT NULL,
        top5_pct REAL NOT NULL,
        top10_pct REAL NOT NULL,
        top20_pct REAL NOT NULL,
        meta TEXT NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS token_metrics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_mint TEXT NOT NULL,
        ts REAL NOT NULL,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scores (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_mint TEXT NOT NULL,
        ts REAL NOT NULL,
        score INTEGER NOT NULL,
        reasons TEXT NOT NULL,
        risk_flags TEXT NOT NULL,
        components TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        token_mint TEXT PRIMARY KEY,
        last_score INTEGER,
        last_sent_at REAL,
        message_id TEXT,
        chat_id TEXT,
        alert_count INTEGER NOT NULL DEFAULT 0,
        last_risk_flags TEXT NOT NULL DEFAULT '[]'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS raw_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_type TEXT NOT NULL,
        signature TEXT,
        payload TEXT NOT NULL,
        received_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_swaps_token_ts ON swaps(token_mint, ts)",
    "CREATE INDEX IF NOT EXISTS idx_holders_token_ts ON holder_snapshots(token_mint, ts)",
    "CREATE INDEX IF NOT EXISTS idx_metrics_token_ts ON token_metrics(token_mint, ts)",
    "CREATE INDEX IF NOT EXISTS idx_scores_token_ts ON scores(token_mint, ts)",
    "CREATE INDEX IF NOT EXISTS idx_scores_ts ON scores(ts)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_status ON tokens(status, last_enriched_at)",
)


def _epoch(value: datetime | None) -> float | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def _datetime(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, UTC)


def _now() -> float:
    return datetime.now(UTC).timestamp()


def _token_from_row(row: aiosqlite.Row) -> TokenRecord:
    return TokenRecord(
        mint=row["mint"],
        name=row["name"],
        symbol=row["symbol"],
        status=TokenStatus(row["status"]),
        first_seen_at=_datetime(row["first_seen_at"]),
        last_enriched_at=_datetime(row["last_enriched_at"]),
        mint_authority=row["mint_authority"],
        freeze_authority=row["freeze_authority"],
        decimals=row["decimals"],
        supply=row["supply"],
        meta=json.loads(row["meta"] or "{}"),
    )


def _pool_from_row(row: aiosqlite.Row) -> PoolRecord:
    return PoolRecord(
        token_mint=row["token_mint"],
        pool_address=row["pool_address"] or None,
        dex=row["dex"],
        base_mint=row["base_mint"],
        quote_mint=row["quote_mint"],
        created_at=_datetime(row["created_at"]),
        liquidity_usd=row["liquidity_usd"],
        liquidity_sol=row["liquidity_sol"],
        meta=json.loads(row["meta"] or "{}"),
    )


class SQLiteStorage(Storage):
    """SQLite-based storage implementation."""

    def __init__(self, db_path: str = "radar.sqlite") -> None:
        """Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        logger.info("SQLite storage initialized", db_path=db_path)

    async def initialize(self) -> None:
        """Initialize database tables."""
        async with aiosqlite.connect(self.db_path) as db:
            for statement in SCHEMA:
                await db.execute(statement)
            await db.commit()

        logger.info("Database tables initialized")

    # ============================================
    # TOKENS
    # ============================================

    async def upsert_token(self, mint: str, meta: dict[str, Any] | None = None) -> None:
        """Create a token on first sighting, merging discovery metadata.

        Args:
            mint: Token mint address
            meta: Metadata merged into the token's meta (existing keys overwritten)
        """
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT meta FROM tokens WHERE mint = ?", (mint,)
            ) as cursor:
                row = await cursor.fetchone()

            if row is None:
                await db.execute(
                    """
                    INSERT INTO tokens (mint, status, first_seen_at, meta)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(mint) DO NOTHING
                """,
                    (mint, TokenStatus.ACTIVE.value, _now(), json.dumps(meta or {})),
                )
            elif meta:
                merged = {**json.loads(row[0] or "{}"), **meta}
                await db.execute(
                    "UPDATE tokens SET meta = ? WHERE mint = ?",
                    (json.dumps(merged), mint),
                )

            await db.commit()

        logger.debug("Token upserted", token_mint=mint)

    async def get_token(self, mint: str) -> TokenRecord | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM tokens WHERE mint = ?", (mint,)
            ) as cursor:
                row = await cursor.fetchone()

        return _token_from_row(row) if row else None

    async def update_token_status(self, mint: str, status: TokenStatus) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE tokens SET status = ? WHERE mint = ?",
                (TokenStatus(status).value, mint),
            )
            await db.commit()

        logger.info("Token status updated", token_mint=mint, status=TokenStatus(status).value)

    async def get_tokens_to_enrich(
        self, limit: int, stale_seconds: int
    ) -> list[TokenRecord]:
        """Active tokens needing enrichment, never-enriched ones first.

        Args:
            limit: Maximum number of tokens
            stale_seconds: Age after which an enrichment is considered stale

        Returns:
            Tokens ordered by last enrichment (oldest first), then newest sighting
        """
        cutoff = _now() - stale_seconds
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT * FROM tokens
                WHERE status = ?
                  AND (last_enriched_at IS NULL OR last_enriched_at < ?)
                ORDER BY last_enriched_at IS NOT NULL,
                         last_enriched_at ASC,
                         first_seen_at DESC
                LIMIT ?
            """,
                (TokenStatus.ACTIVE.value, cutoff, limit),
            ) as cursor:
                rows = await cursor.fetchall()

        return [_token_from_row(row) for row in rows]

    async def update_token_enrichment(self, mint: str, data: dict[str, Any]) -> None:
        """Store enrichment results and bump last_enriched_at.

        Only the enrichment columns present in ``data`` are written, so an
        explicit None (e.g. a revoked authority) is stored while absent keys
        keep their previous value. ``data["meta"]`` is merged into the
        token's meta.
        """
        columns = [c for c in ENRICHMENT_COLUMNS if c in data]
        assignments = [f"{c} = ?" for c in columns] + ["last_enriched_at = ?"]
        params: list[Any] = [data[c] for c in columns] + [_now()]

        async with aiosqlite.connect(self.db_path) as db:
            if data.get("meta"):
                async with db.execute(
                    "SELECT meta FROM tokens WHERE mint = ?", (mint,)
                ) as cursor:
                    row = await cursor.fetchone()
                existing = json.loads(row[0] or "{}") if row else {}
                assignments.append("meta = ?")
                params.append(json.dumps({**existing, **data["meta"]}))

            params.append(mint)
            await db.execute(
                f"UPDATE tokens SET {', '.join(assignments)} WHERE mint = ?",
                params,
            )
            await db.commit()

        logger.debug("Token enrichment stored", token_mint=mint, fields=columns)

    async def get_active_tokens(self, limit: int) -> list[TokenRecord]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT * FROM tokens
                WHERE status = ?
                ORDER BY first_seen_at DESC
                LIMIT ?
            """,
                (TokenStatus.ACTIVE.value, limit),
            ) as cursor:
                rows = await cursor.fetchall()

        return [_token_from_row(row) for row in rows]

    # ============================================
    # POOLS
    # ============================================

    async def upsert_pool(self, pool: PoolRecord) -> None:
        """Insert or update a pool keyed by token and address.

        Liquidity values are only overwritten when the new record carries them.
        """
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO pools (
                    token_mint, pool_address, dex, base_mint, quote_mint,
                    created_at, liquidity_usd, liquidity_sol, meta
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(token_mint, pool_address) DO UPDATE SET
                    dex = excluded.dex,
                    base_mint = COALESCE(excluded.base_mint, pools.base_mint),
                    quote_mint = COALESCE(excluded.quote_mint, pools.quote_mint),
                    liquidity_usd = COALESCE(excluded.liquidity_usd, pools.liquidity_usd),
                    liquidity_sol = COALESCE(excluded.liquidity_sol, pools.liquidity_sol),
                    meta = excluded.meta
            """,
                (
                    pool.token_mint,
                    pool.pool_address or "",
                    pool.dex,
                    pool.base_mint,
                    pool.quote_mint,
                    _epoch(pool.created_at) or _now(),
                    pool.liquidity_usd,
                    pool.liquidity_sol,
                    json.dumps(pool.meta),
                ),
            )
            await db.commit()

        logger.debug(
            "Pool upserted",
            token_mint=pool.token_mint,
            pool_address=pool.pool_address,
            dex=pool.dex,
        )

    async def get_pools_for_token(self, mint: str) -> list[PoolRecord]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT * FROM pools
                WHERE token_mint = ?
                ORDER BY created_at DESC, id DESC
            """,
                (mint,),
            ) as cursor:
                rows = await cursor.fetchall()

        return [_pool_from_row(row) for row in rows]

    # ============================================
    # SWAPS
    # ============================================

    async def insert_swap(self, swap: NormalizedSwap) -> bool:
        """Insert a swap.

        Args:
            swap: Normalized swap

        Returns:
            True if inserted, False if the signature was already stored
        """
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO swaps (
                        token_mint, signature, ts, side, amount_usd, amount_token,
                        amount_sol, buyer, seller, pool_address, meta
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        swap.token_mint,
                        swap.signature,
                        _epoch(swap.ts),
                        swap.side.value,
                        swap.amount_usd,
                        swap.amount_token,
                        swap.amount_sol,
                        swap.buyer,
                        swap.seller,
                        swap.pool_address,
                        json.dumps(swap.meta),
                    ),
                )
                await db.commit()
        except sqlite3.IntegrityError:
            logger.debug("Duplicate swap ignored", signature=swap.signature)
            return False

        return True

    async def get_swaps_since(self, mint: str, since: datetime) -> list[dict[str, Any]]:
        """Swap rows for a token at or after ``since``, newest first."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT signature, ts, side, amount_usd, amount_token, amount_sol,
                       buyer, seller, pool_address
                FROM swaps
                WHERE token_mint = ? AND ts >= ?
                ORDER BY ts DESC
            """,
                (mint, _epoch(since)),
            ) as cursor:
                rows = await cursor.fetchall()

        return [dict(row) for row in rows]

    async def get_swap_metrics(
        self, mint: str, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        now = now or datetime.now(UTC)
        return await self.get_swaps_since(mint, now - timedelta(minutes=15))

    # ============================================
    # SNAPSHOTS
    # ============================================

    async def insert_holder_snapshot(self, mint: str, snapshot: HolderSnapshot) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO holder_snapshots (
                    token_mint, ts, holder_count, top1_pct, top5_pct,
                    top10_pct, top20_pct, meta
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    mint,
                    _epoch(snapshot.ts) or _now(),
                    snapshot.holder_count,
                    snapshot.top1_pct,
                    snapshot.top5_pct,
                    snapshot.top10_pct,
                    snapshot.top20_pct,
                    json.dumps(snapshot.meta),
                ),
            )
            await db.commit()

    async def get_latest_holder_snapshot(self, mint: str) -> HolderSnapshot | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT * FROM holder_snapshots
                WHERE token_mint = ?
                ORDER BY ts DESC, id DESC
                LIMIT 1
            """,
                (mint,),
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None

        return HolderSnapshot(
            token_mint=row["token_mint"],
            ts=_datetime(row["ts"]),
            holder_count=row["holder_count"],
            top1_pct=row["top1_pct"],
            top5_pct=row["top5_pct"],
            top10_pct=row["top10_pct"],
            top20_pct=row["top20_pct"],
            meta=json.loads(row["meta"] or "{}"),
        )

    async def insert_token_metrics(self, mint: str, metrics: MetricsSnapshot) -> None:
        ts = _epoch(metrics.ts) or _now()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO token_metrics (token_mint, ts, data) VALUES (?, ?, ?)",
                (mint, ts, metrics.model_dump_json()),
            )
            await db.commit()

    async def get_latest_token_metrics(self, mint: str) -> MetricsSnapshot | None:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                """
                SELECT data FROM token_metrics
                WHERE token_mint = ?
                ORDER BY ts DESC, id DESC
                LIMIT 1
            """,
                (mint,),
            ) as cursor:
                row = await cursor.fetchone()

        return MetricsSnapshot.model_validate_json(row[0]) if row else None

    # ============================================
    # SCORES
    # ============================================

    async def insert_score(self, mint: str, result: ScoreResult) -> None:
        components = {k: v.model_dump() for k, v in result.components.items()}
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO scores (token_mint, ts, score, reasons, risk_flags, components)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    mint,
                    _now(),
                    result.score,
                    json.dumps(list(result.reasons)),
                    json.dumps(list(result.risk_flags)),
                    json.dumps(components),
                ),
            )
            await db.commit()

        logger.debug("Score stored", token_mint=mint, score=result.score)

    async def get_latest_score(self, mint: str) -> ScoreResult | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT score, reasons, risk_flags, components FROM scores
                WHERE token_mint = ?
                ORDER BY ts DESC, id DESC
                LIMIT 1
            """,
                (mint,),
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None

        return ScoreResult.model_validate(
            {
                "score": row["score"],
                "reasons": json.loads(row["reasons"]),
                "risk_flags": json.loads(row["risk_flags"]),
                "components": json.loads(row["components"]),
            }
        )

    async def get_top_scored_tokens(
        self, minutes: int = 30, limit: int = 5
    ) -> list[dict[str, Any]]:
        """Best score per token within the trailing window.

        Args:
            minutes: Window length
            limit: Maximum number of tokens

        Returns:
            Rows with token_mint, score, risk_flags, ts, name and symbol,
            highest score first, one per token
        """
        since = _now() - minutes * 60
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT s.token_mint, s.score, s.risk_flags, s.ts, t.name, t.symbol
                FROM scores s
                LEFT JOIN tokens t ON t.mint = s.token_mint
                WHERE s.ts >= ?
                ORDER BY s.score DESC, s.ts DESC
            """,
                (since,),
            ) as cursor:
                rows = await cursor.fetchall()

        top: list[dict[str, Any]] = []
        seen: set[str] = set()
        for row in rows:
            if row["token_mint"] in seen:
                continue
            seen.add(row["token_mint"])
            top.append(
                {
                    "token_mint": row["token_mint"],
                    "score": row["score"],
                    "risk_flags": json.loads(row["risk_flags"]),
                    "ts": _datetime(row["ts"]),
                    "name": row["name"],
                    "symbol": row["symbol"],
                }
            )
            if len(top) >= limit:
                break

        return top

    # ============================================
    # ALERTS
    # ============================================

    async def get_or_create_alert(self, mint: str) -> AlertState:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute(
                "INSERT INTO alerts (token_mint) VALUES (?) ON CONFLICT(token_mint) DO NOTHING",
                (mint,),
            )
            await db.commit()
            async with db.execute(
                "SELECT * FROM alerts WHERE token_mint = ?", (mint,)
            ) as cursor:
                row = await cursor.fetchone()

        return AlertState(
            token_mint=row["token_mint"],
            last_score=row["last_score"],
            last_sent_at=_datetime(row["last_sent_at"]),
            message_id=row["message_id"],
            chat_id=row["chat_id"],
            alert_count=row["alert_count"],
            last_risk_flags=json.loads(row["last_risk_flags"] or "[]"),
        )

    async def update_alert(self, state: AlertState) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO alerts (
                    token_mint, last_score, last_sent_at, message_id, chat_id,
                    alert_count, last_risk_flags
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(token_mint) DO UPDATE SET
                    last_score = excluded.last_score,
                    last_sent_at = excluded.last_sent_at,
                    message_id = excluded.message_id,
                    chat_id = excluded.chat_id,
                    alert_count = excluded.alert_count,
                    last_risk_flags = excluded.last_risk_flags
            """,
                (
                    state.token_mint,
                    state.last_score,
                    _epoch(state.last_sent_at),
                    state.message_id,
                    state.chat_id,
                    state.alert_count,
                    json.dumps(state.last_risk_flags),
                ),
            )
            await db.commit()

        logger.debug(
            "Alert state updated",
            token_mint=state.token_mint,
            last_score=state.last_score,
            alert_count=state.alert_count,
        )

    # ============================================
    # RAW EVENTS
    # ============================================

    async def store_raw_event(
        self, event_type: str, signature: str | None, payload: dict[str, Any]
    ) -> None:
        """Audit a raw webhook record. Failures are logged, never raised."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO raw_events (event_type, signature, payload, received_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (event_type, signature, json.dumps(payload, default=str), _now()),
                )
                await db.commit()
        except Exception as e:
            logger.warning("Failed to store raw event", signature=signature, error=str(e))

    # ============================================
    # RETENTION
    # ============================================

    async def cleanup_old_data(self, days_to_keep: int = 7) -> dict[str, int]:
        """Delete data older than the retention window.

        Raw events go entirely, swaps only for tokens that are no longer active,
        and snapshot tables keep at least the latest row per token.

        Returns:
            Number of rows deleted per table
        """
        cutoff = _now() - days_to_keep * 86400
        statements = {
            "raw_events": ("DELETE FROM raw_events WHERE received_at < ?", (cutoff,)),
            "swaps": (
                """
                DELETE FROM swaps
                WHERE ts < ?
                AND token_mint IN (SELECT mint FROM tokens WHERE status != ?)
            """,
                (cutoff, TokenStatus.ACTIVE.value),
            ),
        }
        for table in ("token_metrics", "holder_snapshots", "scores"):
            statements[table] = (
                f"""
                DELETE FROM {table}
                WHERE ts < ?
                AND EXISTS (
                    SELECT 1 FROM {table} newer
                    WHERE newer.token_mint = {table}.token_mint
                    AND newer.ts > {table}.ts
                )
            """,
                (cutoff,),
            )

        deleted: dict[str, int] = {}
        async with aiosqlite.connect(self.db_path) as db:
            for table, (sql, params) in statements.items():
                cursor = await db.execute(sql, params)
                deleted[table] = cursor.rowcount
            await db.commit()

        logger.info("Old data cleaned up", days_to_keep=days_to_keep, **deleted)
        return deleted

    async def health_check(self) -> bool:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute("SELECT 1") as cursor:
                    row = await cursor.fetchone()
            return row is not None and row[0] == 1
        except Exception as e:
            logger.error("Storage health check failed", db_path=self.db_path, error=str(e))
            return False

    async def close(self) -> None:
        """Close storage (cleanup if needed)."""
        logger.info("Storage closed")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
