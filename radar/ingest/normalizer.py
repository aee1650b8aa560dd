"""Classification and normalization of Helius enhanced transactions."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from ..core.types import (
    EventType,
    NormalizedEvent,
    NormalizedPoolCreation,
    NormalizedSwap,
    SwapSide,
    TokenSighting,
    Unrecognized,
)
from .dedupe import DedupCache

logger = structlog.get_logger(__name__)

# Known DEX program IDs on Solana
DEX_PROGRAMS: dict[str, str] = {
    "RAYDIUM_V4": "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
    "RAYDIUM_CLMM": "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
    "RAYDIUM_CP": "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",
    "ORCA_WHIRLPOOL": "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
    "METEORA_DLMM": "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",
    "METEORA_POOLS": "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB",
    "PUMP_FUN": "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
    "PUMP_FUN_AMM": "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA",
    "JUPITER_V6": "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
    "MOONSHOT": "MoonCVVNZFSYkqNXP6bxHLPL6QQJiMagDL3qcqUQTrG",
}
DEX_PROGRAM_NAMES: dict[str, str] = {pid: name for name, pid in DEX_PROGRAMS.items()}

# Source names Helius reports for DEX swaps
DEX_SOURCE_HINTS = ("RAYDIUM", "ORCA", "METEORA", "PUMP")

WSOL_MINT = "So11111111111111111111111111111111111111112"

STABLECOIN_MINTS = frozenset(
    {
        "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",  # USDC
        "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",  # USDT
    }
)

QUOTE_MINTS = STABLECOIN_MINTS | {WSOL_MINT}

LAMPORTS_PER_SOL = 1_000_000_000


def is_quote_mint(mint: str | None) -> bool:
    """Whether a mint is the native coin or a recognized stablecoin."""
    return mint in QUOTE_MINTS


def _to_float(value: Any) -> float | None:
    """Parse a numeric amount, treating zero and garbage as missing."""
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed or None


def _instructions(tx: dict[str, Any]) -> list[dict[str, Any]]:
    return tx.get("instructions") or tx.get("accountData") or []


def classify(tx: dict[str, Any]) -> EventType:
    """Classify a raw transaction record.

    Precedence: declared type, source-name DEX match, DEX program ids in
    instructions, presence of token transfers, otherwise UNKNOWN.
    """
    declared = tx.get("type")
    if declared:
        try:
            return EventType(str(declared).upper())
        except ValueError:
            return EventType.UNKNOWN

    source = tx.get("source")
    if source:
        upper = str(source).upper()
        if any(hint in upper for hint in DEX_SOURCE_HINTS):
            return EventType.SWAP

    for ix in _instructions(tx):
        program_id = ix.get("programId") or ix.get("program")
        if program_id and program_id in DEX_PROGRAM_NAMES:
            return EventType.SWAP

    if tx.get("tokenTransfers"):
        return EventType.TRANSFER

    return EventType.UNKNOWN


def event_type_label(tx: dict[str, Any]) -> str:
    """Label used when auditing raw events."""
    if tx.get("type"):
        return str(tx["type"])
    if tx.get("source"):
        return f"{tx['source']}_TRANSACTION"
    return EventType.UNKNOWN.value


class NormalizationResult(BaseModel):
    """Records extracted from one webhook payload."""

    swaps: list[NormalizedSwap] = Field(default_factory=list)
    pools: list[NormalizedPoolCreation] = Field(default_factory=list)
    sightings: list[TokenSighting] = Field(default_factory=list)
    duplicates: int = 0
    unrecognized: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return len(self.swaps) + len(self.pools) + len(self.sightings)


class EventNormalizer:
    """Turns raw transaction records into canonical swap/pool/sighting records."""

    def __init__(
        self,
        dedup: DedupCache,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize normalizer.

        Args:
            dedup: Dedup cache gating records by signature
            now_fn: Clock for records without a timestamp (for testing)
        """
        self.dedup = dedup
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    def normalize(self, payload: Any) -> NormalizationResult:
        """Normalize a webhook payload (single record or list of records).

        Duplicate signatures are skipped; a failing record is logged and does
        not affect its siblings.
        """
        transactions = payload if isinstance(payload, list) else [payload]
        result = NormalizationResult()

        for tx in transactions:
            if not isinstance(tx, dict):
                continue

            signature = tx.get("signature")
            try:
                if signature and not self.dedup.check_and_mark_signature(signature):
                    result.duplicates += 1
                    continue
                event = self.normalize_transaction(tx)
            except Exception as e:
                result.failed += 1
                logger.error(
                    "Failed to parse transaction", signature=signature, error=str(e)
                )
                continue

            if isinstance(event, NormalizedSwap):
                result.swaps.append(event)
                result.sightings.append(
                    TokenSighting(mint=event.token_mint, source="swap")
                )
            elif isinstance(event, NormalizedPoolCreation):
                result.pools.append(event)
                result.sightings.append(
                    TokenSighting(mint=event.token_mint, source="pool_creation")
                )
            elif isinstance(event, TokenSighting):
                result.sightings.append(event)
            else:
                result.unrecognized += 1

        logger.debug(
            "Normalized payload",
            records=len(transactions),
            swaps=len(result.swaps),
            pools=len(result.pools),
            sightings=len(result.sightings),
            duplicates=result.duplicates,
            unrecognized=result.unrecognized,
        )
        return result

    def normalize_transaction(self, tx: dict[str, Any]) -> NormalizedEvent:
        """Classify one record and extract its canonical form (no dedup)."""
        event_type = classify(tx)
        signature = tx.get("signature")

        event: NormalizedEvent | None
        if event_type == EventType.SWAP:
            event = self.extract_swap(tx)
        elif event_type in (EventType.CREATE_POOL, EventType.INITIALIZE_POOL):
            event = self.extract_pool_creation(tx)
        elif event_type in (EventType.TRANSFER, EventType.TOKEN_MINT):
            event = self.extract_transfer_sighting(tx)
        else:
            event = self.extract_any_mint(tx)

        if event is None:
            return Unrecognized(signature=signature, event_type=event_type.value)
        return event

    def _timestamp(self, tx: dict[str, Any]) -> datetime:
        ts = tx.get("timestamp")
        if isinstance(ts, int | float) and not isinstance(ts, bool):
            return datetime.fromtimestamp(ts, UTC)
        return self._now_fn()

    def extract_swap(self, tx: dict[str, Any]) -> NormalizedSwap | None:
        """Extract a swap, or None when no non-quote subject token exists."""
        fee_payer = tx.get("feePayer")

        token_mint: str | None = None
        side = SwapSide.UNKNOWN
        amount_usd: float | None = None
        amount_token: float | None = None
        amount_sol: float | None = None
        buyer: str | None = None
        seller: str | None = None

        for transfer in tx.get("tokenTransfers") or []:
            mint = transfer.get("mint")

            if is_quote_mint(mint):
                # Counter-leg of the swap
                quote_amount = _to_float(transfer.get("tokenAmount"))
                if quote_amount is not None:
                    amount_sol = quote_amount
                    if mint in STABLECOIN_MINTS:
                        amount_usd = quote_amount
                continue

            if token_mint is not None or not mint:
                continue

            token_mint = mint
            amount_token = _to_float(transfer.get("tokenAmount"))

            if fee_payer and transfer.get("toUserAccount") == fee_payer:
                side = SwapSide.BUY
                buyer = fee_payer
            elif fee_payer and transfer.get("fromUserAccount") == fee_payer:
                side = SwapSide.SELL
                seller = fee_payer

        # Lamport total as a rough quote estimate when no quote leg was found
        native_transfers = tx.get("nativeTransfers") or []
        if amount_sol is None and native_transfers:
            total_lamports = sum(abs(t.get("amount") or 0) for t in native_transfers)
            if total_lamports > 0:
                amount_sol = total_lamports / LAMPORTS_PER_SOL

        swap_event = (tx.get("events") or {}).get("swap")
        if swap_event:
            if token_mint is None:
                outputs = swap_event.get("tokenOutputs") or [{}]
                inputs = swap_event.get("tokenInputs") or [{}]
                token_mint = outputs[0].get("mint") or inputs[0].get("mint")
            if side == SwapSide.UNKNOWN:
                if (swap_event.get("nativeOutput") or {}).get("amount"):
                    side = SwapSide.SELL
                    seller = fee_payer
                elif (swap_event.get("nativeInput") or {}).get("amount"):
                    side = SwapSide.BUY
                    buyer = fee_payer

        if not token_mint or is_quote_mint(token_mint):
            return None

        return NormalizedSwap(
            token_mint=token_mint,
            signature=tx.get("signature"),
            ts=self._timestamp(tx),
            side=side,
            amount_usd=amount_usd,
            amount_token=amount_token,
            amount_sol=amount_sol,
            buyer=buyer,
            seller=seller,
            meta={
                "source": tx.get("source") or "unknown",
                "type": tx.get("type"),
                "fee_payer": fee_payer,
            },
        )

    def extract_pool_creation(
        self, tx: dict[str, Any]
    ) -> NormalizedPoolCreation | None:
        """Extract a pool creation, or None when no subject mint exists."""
        dex = "unknown"
        pool_address: str | None = None

        for ix in tx.get("instructions") or []:
            program_id = ix.get("programId")
            if dex == "unknown" and program_id in DEX_PROGRAM_NAMES:
                dex = DEX_PROGRAM_NAMES[program_id].lower()

            # First instruction account is a provisional pool address
            accounts = ix.get("accounts") or []
            if pool_address is None and accounts:
                pool_address = accounts[0]

        base_mint: str | None = None
        quote_mint: str | None = None
        for transfer in tx.get("tokenTransfers") or []:
            mint = transfer.get("mint")
            if not mint:
                continue
            if is_quote_mint(mint):
                quote_mint = quote_mint or mint
            elif base_mint is None:
                base_mint = mint

        if base_mint is None:
            return None

        return NormalizedPoolCreation(
            token_mint=base_mint,
            pool_address=pool_address,
            dex=dex,
            base_mint=base_mint,
            quote_mint=quote_mint,
            created_at=self._timestamp(tx),
            meta={"signature": tx.get("signature"), "fee_payer": tx.get("feePayer")},
        )

    def extract_transfer_sighting(self, tx: dict[str, Any]) -> TokenSighting | None:
        """First non-quote mint among token transfers."""
        for transfer in tx.get("tokenTransfers") or []:
            mint = transfer.get("mint")
            if mint and not is_quote_mint(mint):
                return TokenSighting(mint=mint, source="transfer")
        return None

    def extract_any_mint(self, tx: dict[str, Any]) -> TokenSighting | None:
        """Best-effort mint extraction for unclassified records."""
        for transfer in tx.get("tokenTransfers") or []:
            mint = transfer.get("mint")
            if mint and not is_quote_mint(mint):
                return TokenSighting(mint=mint, source="transaction")

        for account in tx.get("accountData") or []:
            for change in account.get("tokenBalanceChanges") or []:
                mint = change.get("mint")
                if mint and not is_quote_mint(mint):
                    return TokenSighting(mint=mint, source="account_data")

        return None
