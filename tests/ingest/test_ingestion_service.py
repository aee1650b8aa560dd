"""Tests for the ingestion service."""

from unittest.mock import AsyncMock

import pytest

from radar.core.types import PoolRecord
from radar.ingest.dedupe import DedupCache
from radar.ingest.normalizer import DEX_PROGRAMS, WSOL_MINT, EventNormalizer
from radar.ingest.service import IngestionService

MEME_MINT = "MemeMint1111111111111111111111111111111111"
WALLET = "Wallet1111111111111111111111111111111111111"
POOL = "PoolAcct11111111111111111111111111111111111"


def swap_tx(signature="sig1"):
    return {
        "signature": signature,
        "type": "SWAP",
        "source": "RAYDIUM",
        "timestamp": 1704110400,
        "feePayer": WALLET,
        "tokenTransfers": [
            {"mint": WSOL_MINT, "tokenAmount": 2.5, "fromUserAccount": WALLET, "toUserAccount": POOL},
            {"mint": MEME_MINT, "tokenAmount": 1000, "fromUserAccount": POOL, "toUserAccount": WALLET},
        ],
    }


def pool_tx(signature="pool-sig"):
    return {
        "signature": signature,
        "type": "CREATE_POOL",
        "timestamp": 1704110400,
        "instructions": [{"programId": DEX_PROGRAMS["RAYDIUM_V4"], "accounts": [POOL]}],
        "tokenTransfers": [
            {"mint": WSOL_MINT, "tokenAmount": 10},
            {"mint": MEME_MINT, "tokenAmount": 1_000_000},
        ],
    }


@pytest.fixture
def storage():
    storage = AsyncMock()
    storage.insert_swap.return_value = True
    return storage


@pytest.fixture
def service(storage):
    return IngestionService(EventNormalizer(DedupCache()), storage, queue_size=2, workers=1)


class TestProcessPayload:
    """Test normalization and persistence of a payload."""

    @pytest.mark.asyncio
    async def test_swap_persisted(self, service, storage):
        result = await service.process_payload([swap_tx()])

        assert len(result.swaps) == 1
        storage.store_raw_event.assert_awaited_once()
        assert storage.store_raw_event.call_args[0][:2] == ("SWAP", "sig1")
        storage.upsert_token.assert_awaited_once_with(MEME_MINT, {"discovered_via": "swap"})
        swap = storage.insert_swap.call_args[0][0]
        assert swap.token_mint == MEME_MINT
        assert swap.signature == "sig1"
        assert service.normalizer.dedup.has_seen_mint(MEME_MINT)

    @pytest.mark.asyncio
    async def test_pool_persisted(self, service, storage):
        await service.process_payload(pool_tx())

        storage.upsert_token.assert_awaited_once_with(MEME_MINT, {"discovered_via": "pool_creation"})
        pool = storage.upsert_pool.call_args[0][0]
        assert isinstance(pool, PoolRecord)
        assert pool.token_mint == MEME_MINT
        assert pool.pool_address == POOL
        assert pool.dex == "raydium_v4"
        assert pool.quote_mint == WSOL_MINT

    @pytest.mark.asyncio
    async def test_duplicate_signature(self, service, storage):
        """A redelivered record is audited but not persisted twice."""
        await service.process_payload([swap_tx()])
        result = await service.process_payload([swap_tx()])

        assert result.duplicates == 1
        assert storage.store_raw_event.await_count == 2
        assert storage.insert_swap.await_count == 1

    @pytest.mark.asyncio
    async def test_storage_duplicate_counted(self, service, storage):
        """A swap rejected by storage counts as a duplicate."""
        storage.insert_swap.return_value = False

        result = await service.process_payload(swap_tx())

        assert result.duplicates == 1

    @pytest.mark.asyncio
    async def test_write_failures_are_isolated(self, service, storage):
        """A failing write does not stop the rest of the payload."""
        storage.upsert_token.side_effect = RuntimeError("locked")
        storage.insert_swap.side_effect = RuntimeError("locked")

        result = await service.process_payload([swap_tx("a"), pool_tx("b")])

        assert len(result.swaps) == 1
        storage.upsert_pool.assert_awaited_once()
        assert not service.normalizer.dedup.has_seen_mint(MEME_MINT)

    @pytest.mark.asyncio
    async def test_non_dict_records_skipped(self, service, storage):
        result = await service.process_payload(["junk", 42])

        assert result.total == 0
        storage.store_raw_event.assert_not_called()


class TestQueue:
    """Test queueing and the consumer lifecycle."""

    @pytest.mark.asyncio
    async def test_submit_until_full(self, service):
        assert service.submit({"a": 1}) == {"received": True}
        assert service.submit({"a": 2}) == {"received": True}
        assert service.submit({"a": 3}) == {"received": False}

    @pytest.mark.asyncio
    async def test_stop_drains_queue(self, service, storage):
        """Payloads accepted before stop are all processed."""
        await service.start()
        service.submit(swap_tx("a"))
        service.submit(swap_tx("b"))

        await service.stop()

        assert storage.insert_swap.await_count == 2
        assert service.queue.empty()
        assert service.running is False

    @pytest.mark.asyncio
    async def test_consumer_survives_errors(self, service, storage):
        storage.store_raw_event.side_effect = RuntimeError("disk full")
        await service.start()
        service.submit(swap_tx("a"))
        await service.queue.join()

        storage.store_raw_event.side_effect = None
        service.submit(swap_tx("b"))
        await service.stop()

        assert storage.insert_swap.await_count == 1

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, service):
        await service.stop()
        await service.start()
        await service.start()
        assert len(service._tasks) == 1
        await service.stop()
