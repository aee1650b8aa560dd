"""Tests for event classification and normalization."""

from datetime import UTC, datetime

import pytest

from radar.core.types import (
    EventType,
    NormalizedPoolCreation,
    NormalizedSwap,
    SwapSide,
    TokenSighting,
    Unrecognized,
)
from radar.ingest.dedupe import DedupCache
from radar.ingest.normalizer import (
    DEX_PROGRAMS,
    WSOL_MINT,
    EventNormalizer,
    classify,
    event_type_label,
    is_quote_mint,
)

MEME_MINT = "MemeMint1111111111111111111111111111111111"
OTHER_MINT = "OtherMint111111111111111111111111111111111"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WALLET = "Wallet1111111111111111111111111111111111111"
POOL = "PoolAcct11111111111111111111111111111111111"
FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def swap_tx(signature="sig1", side="buy", **overrides):
    """Build a Helius-style swap record for the fee payer."""
    if side == "buy":
        meme = {"mint": MEME_MINT, "tokenAmount": 1000, "fromUserAccount": POOL, "toUserAccount": WALLET}
        sol = {"mint": WSOL_MINT, "tokenAmount": 2.5, "fromUserAccount": WALLET, "toUserAccount": POOL}
    else:
        meme = {"mint": MEME_MINT, "tokenAmount": 1000, "fromUserAccount": WALLET, "toUserAccount": POOL}
        sol = {"mint": WSOL_MINT, "tokenAmount": 2.5, "fromUserAccount": POOL, "toUserAccount": WALLET}
    tx = {
        "signature": signature,
        "type": "SWAP",
        "source": "RAYDIUM",
        "timestamp": 1704110400,
        "feePayer": WALLET,
        "tokenTransfers": [sol, meme],
    }
    tx.update(overrides)
    return tx


@pytest.fixture
def normalizer():
    return EventNormalizer(DedupCache(), now_fn=lambda: FIXED_NOW)


class TestClassify:
    """Test classification precedence."""

    def test_declared_type_wins(self):
        """Declared type beats every heuristic."""
        tx = {"type": "create_pool", "source": "RAYDIUM", "tokenTransfers": [{}]}
        assert classify(tx) == EventType.CREATE_POOL

    def test_unknown_declared_type(self):
        """An unrecognized declared type is UNKNOWN."""
        assert classify({"type": "NFT_SALE"}) == EventType.UNKNOWN

    def test_source_name_hint(self):
        """DEX source names imply a swap."""
        assert classify({"source": "PUMP_FUN"}) == EventType.SWAP
        assert classify({"source": "orca"}) == EventType.SWAP

    def test_program_id_registry(self):
        """Known DEX program ids in instructions imply a swap."""
        tx = {
            "source": "SYSTEM_PROGRAM",
            "instructions": [{"programId": DEX_PROGRAMS["METEORA_DLMM"]}],
        }
        assert classify(tx) == EventType.SWAP

    def test_transfer_fallback(self):
        """Token transfers without other hints classify as TRANSFER."""
        assert classify({"tokenTransfers": [{"mint": MEME_MINT}]}) == EventType.TRANSFER

    def test_unknown(self):
        assert classify({}) == EventType.UNKNOWN

    def test_event_type_label(self):
        assert event_type_label({"type": "SWAP"}) == "SWAP"
        assert event_type_label({"source": "RAYDIUM"}) == "RAYDIUM_TRANSACTION"
        assert event_type_label({}) == "UNKNOWN"

    def test_quote_mints(self):
        assert is_quote_mint(WSOL_MINT)
        assert is_quote_mint(USDC_MINT)
        assert not is_quote_mint(MEME_MINT)


class TestSwapExtraction:
    """Test swap normalization."""

    def test_buy_side(self, normalizer):
        """Fee payer receiving the subject token is a buy."""
        swap = normalizer.normalize_transaction(swap_tx(side="buy"))

        assert isinstance(swap, NormalizedSwap)
        assert swap.token_mint == MEME_MINT
        assert swap.side == SwapSide.BUY
        assert swap.buyer == WALLET
        assert swap.seller is None
        assert swap.amount_token == 1000
        assert swap.amount_sol == 2.5
        assert swap.ts == datetime.fromtimestamp(1704110400, UTC)

    def test_sell_side(self, normalizer):
        """Fee payer sending the subject token is a sell."""
        swap = normalizer.normalize_transaction(swap_tx(side="sell"))

        assert swap.side == SwapSide.SELL
        assert swap.seller == WALLET
        assert swap.buyer is None

    def test_subject_is_never_a_quote_asset(self, normalizer):
        """A swap between quote assets only has no subject token."""
        tx = swap_tx(
            tokenTransfers=[
                {"mint": WSOL_MINT, "tokenAmount": 1},
                {"mint": USDC_MINT, "tokenAmount": 100},
            ]
        )
        result = normalizer.normalize_transaction(tx)

        assert isinstance(result, Unrecognized)
        assert result.event_type == "SWAP"

    def test_first_non_quote_transfer_is_subject(self, normalizer):
        """The first non-quote transfer determines the subject token."""
        tx = swap_tx(
            tokenTransfers=[
                {"mint": MEME_MINT, "tokenAmount": 5, "toUserAccount": WALLET},
                {"mint": OTHER_MINT, "tokenAmount": 7, "fromUserAccount": WALLET},
            ]
        )
        swap = normalizer.normalize_transaction(tx)

        assert swap.token_mint == MEME_MINT
        assert swap.side == SwapSide.BUY

    def test_stablecoin_leg_sets_usd(self, normalizer):
        """A stablecoin counter-leg gives a USD amount."""
        tx = swap_tx(
            tokenTransfers=[
                {"mint": USDC_MINT, "tokenAmount": 150, "fromUserAccount": WALLET},
                {"mint": MEME_MINT, "tokenAmount": 10, "toUserAccount": WALLET},
            ]
        )
        swap = normalizer.normalize_transaction(tx)

        assert swap.amount_usd == 150
        assert swap.amount_sol == 150

    def test_native_transfer_fallback(self, normalizer):
        """Without a quote leg, native lamports give the SOL amount."""
        tx = swap_tx(
            tokenTransfers=[{"mint": MEME_MINT, "tokenAmount": 10, "toUserAccount": WALLET}],
            nativeTransfers=[{"amount": 1_500_000_000}, {"amount": -500_000_000}],
        )
        swap = normalizer.normalize_transaction(tx)

        assert swap.amount_sol == 2.0

    def test_unknown_side(self, normalizer):
        """A fee payer on neither side leaves the side unknown."""
        tx = swap_tx(feePayer="SomeoneElse")
        swap = normalizer.normalize_transaction(tx)

        assert swap.side == SwapSide.UNKNOWN
        assert swap.buyer is None
        assert swap.seller is None

    def test_swap_event_fills_mint_and_side(self, normalizer):
        """Helius swap events fill a missing subject and side."""
        tx = {
            "signature": "sig-ev",
            "type": "SWAP",
            "feePayer": WALLET,
            "tokenTransfers": [],
            "events": {
                "swap": {
                    "nativeInput": {"account": WALLET, "amount": "1000000000"},
                    "tokenOutputs": [{"mint": MEME_MINT}],
                }
            },
        }
        swap = normalizer.normalize_transaction(tx)

        assert swap.token_mint == MEME_MINT
        assert swap.side == SwapSide.BUY
        assert swap.buyer == WALLET

    def test_missing_timestamp_uses_clock(self, normalizer):
        tx = swap_tx()
        del tx["timestamp"]

        swap = normalizer.normalize_transaction(tx)
        assert swap.ts == FIXED_NOW


class TestPoolExtraction:
    """Test pool creation normalization."""

    def test_pool_creation(self, normalizer):
        tx = {
            "signature": "pool-sig",
            "type": "CREATE_POOL",
            "timestamp": 1704110400,
            "instructions": [
                {"programId": DEX_PROGRAMS["RAYDIUM_V4"], "accounts": [POOL, "x"]},
            ],
            "tokenTransfers": [
                {"mint": WSOL_MINT, "tokenAmount": 10},
                {"mint": MEME_MINT, "tokenAmount": 1_000_000},
            ],
        }
        pool = normalizer.normalize_transaction(tx)

        assert isinstance(pool, NormalizedPoolCreation)
        assert pool.token_mint == MEME_MINT
        assert pool.base_mint == MEME_MINT
        assert pool.quote_mint == WSOL_MINT
        assert pool.dex == "raydium_v4"
        assert pool.pool_address == POOL

    def test_pool_without_base(self, normalizer):
        tx = {"type": "INITIALIZE_POOL", "tokenTransfers": [{"mint": WSOL_MINT}]}
        assert isinstance(normalizer.normalize_transaction(tx), Unrecognized)


class TestSightings:
    """Test token sighting extraction."""

    def test_transfer_sighting(self, normalizer):
        tx = {"type": "TRANSFER", "tokenTransfers": [{"mint": WSOL_MINT}, {"mint": MEME_MINT}]}
        sighting = normalizer.normalize_transaction(tx)

        assert sighting == TokenSighting(mint=MEME_MINT, source="transfer")

    def test_account_data_sighting(self, normalizer):
        tx = {
            "accountData": [
                {"account": WALLET, "tokenBalanceChanges": [{"mint": MEME_MINT}]}
            ]
        }
        sighting = normalizer.normalize_transaction(tx)

        assert sighting == TokenSighting(mint=MEME_MINT, source="account_data")

    def test_nothing_found(self, normalizer):
        assert isinstance(normalizer.normalize_transaction({"signature": "s"}), Unrecognized)


class TestNormalizePayload:
    """Test batch normalization."""

    def test_single_record(self, normalizer):
        result = normalizer.normalize(swap_tx())

        assert len(result.swaps) == 1
        assert result.sightings == [TokenSighting(mint=MEME_MINT, source="swap")]

    def test_list_payload(self, normalizer):
        result = normalizer.normalize(
            [swap_tx("a"), swap_tx("b", side="sell"), {"signature": "c"}]
        )

        assert [s.signature for s in result.swaps] == ["a", "b"]
        assert result.unrecognized == 1

    def test_idempotent_on_duplicates(self, normalizer):
        """The same record twice yields one swap."""
        first = normalizer.normalize([swap_tx("dup"), swap_tx("dup")])
        second = normalizer.normalize(swap_tx("dup"))

        assert len(first.swaps) == 1
        assert first.duplicates == 1
        assert second.swaps == []
        assert second.duplicates == 1

    def test_failing_record_is_isolated(self, normalizer):
        """A record that raises does not affect its siblings."""
        bad = swap_tx("bad", tokenTransfers="not-a-list")
        result = normalizer.normalize([bad, swap_tx("good")])

        assert result.failed == 1
        assert [s.signature for s in result.swaps] == ["good"]

    def test_unhashable_signature_is_isolated(self, normalizer):
        """A record with a non-string signature fails alone."""
        bad = {"signature": ["not", "a", "string"], "type": "SWAP"}
        result = normalizer.normalize([bad, swap_tx("good")])

        assert result.failed == 1
        assert [s.signature for s in result.swaps] == ["good"]

    def test_non_dict_records_skipped(self, normalizer):
        result = normalizer.normalize(["junk", 42, swap_tx()])
        assert len(result.swaps) == 1
