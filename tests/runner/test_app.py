"""Tests for application assembly and lifecycle."""

import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from radar.alerts.telegram import TelegramCommandHandler, TelegramNotifier
from radar.config.settings import AppSettings
from radar.ingest.normalizer import WSOL_MINT
from radar.core.types import AlertAction, ScoreResult, TokenRecord
from radar.runner.app import Application, configure_logging

MINT = "MemeMint1111111111111111111111111111111111"
WALLET = "Wallet1111111111111111111111111111111111111"
POOL = "PoolAcct11111111111111111111111111111111111"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HELIUS_API_KEY", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "WEBHOOK_SECRET"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield str(Path(tmp_dir) / "app.sqlite")


def make_settings(db_path, **overrides):
    values = {
        "env": "dev",
        "database_path": db_path,
        "enrich_interval_seconds": 60,
        "score_interval_seconds": 60,
    }
    values.update(overrides)
    return AppSettings(**values)


class TestApplication:
    """Test the application orchestrator."""

    @pytest_asyncio.fixture
    async def app(self, db_path):
        app = Application(make_settings(db_path))
        yield app
        await app.components["helius"].close()

    def test_configure_logging(self):
        configure_logging("debug")
        configure_logging("nonsense")

    @pytest.mark.asyncio
    async def test_assembly_without_telegram(self, app):
        assert app.components["notifier"] is None
        assert app.components["dispatcher"].notifier is None
        assert "commands" not in app.components
        assert app.components["dispatcher"].chat_id is None
        assert app.components["enrich_worker"].interval_seconds == 60
        assert app.components["cleanup_worker"].days_to_keep == 7
        assert app.components["dedup"].mints.capacity == 10000

    @pytest.mark.asyncio
    async def test_assembly_with_telegram(self, db_path):
        settings = make_settings(
            db_path,
            telegram_bot_token="123:abc",
            telegram_chat_id="-100",
            telegram_admin_ids=[42],
            alert_score_threshold=65,
        )
        app = Application(settings)
        try:
            assert isinstance(app.components["notifier"], TelegramNotifier)
            commands = app.components["commands"]
            assert isinstance(commands, TelegramCommandHandler)
            assert commands.admin_user_ids == [42]
            assert commands.help_values["score"] == 65
            assert app.components["dispatcher"].chat_id == "-100"
        finally:
            await app.components["notifier"].close()

    @pytest.mark.asyncio
    async def test_chat_without_bot_token(self, db_path):
        """A chat id alone leaves alert state untouched instead of failing sends."""
        app = Application(make_settings(db_path, telegram_chat_id="-100"))
        storage = app.components["storage"]
        try:
            await storage.initialize()
            await storage.upsert_token(MINT)

            verdict = await app.components["dispatcher"].process(
                TokenRecord(mint=MINT), ScoreResult(score=90)
            )

            assert verdict.action == AlertAction.SEND
            alert = await storage.get_or_create_alert(MINT)
            assert alert.alert_count == 0
            assert alert.message_id is None
        finally:
            await app.components["helius"].close()

    @pytest.mark.asyncio
    async def test_check_storage(self, app):
        await app.check_storage()
        assert Path(app.settings.database_path).exists()

    @pytest.mark.asyncio
    async def test_check_storage_fails(self, app):
        """An unhealthy database aborts startup."""
        app.components["storage"].health_check = AsyncMock(return_value=False)

        with pytest.raises(RuntimeError, match="Storage health check failed"):
            await app.check_storage()

    @pytest.mark.asyncio
    async def test_start_and_stop_without_serving(self, app):
        await app.start(serve=False)
        assert app.running is True
        assert app.components["ingestion"].running is True

        await app.stop()

        assert app.running is False
        assert app.components["ingestion"].running is False
        assert app.components["score_worker"].running is False

    @pytest.mark.asyncio
    async def test_replay(self, db_path, tmp_path):
        """A saved payload is ingested into storage."""
        payload = [
            {
                "signature": "replay-sig",
                "type": "SWAP",
                "source": "RAYDIUM",
                "timestamp": 1704110400,
                "feePayer": WALLET,
                "tokenTransfers": [
                    {"mint": WSOL_MINT, "tokenAmount": 1.5, "fromUserAccount": WALLET, "toUserAccount": POOL},
                    {"mint": MINT, "tokenAmount": 500, "fromUserAccount": POOL, "toUserAccount": WALLET},
                ],
            }
        ]
        replay_file = tmp_path / "payload.json"
        replay_file.write_text(json.dumps(payload), encoding="utf-8")

        app = Application(make_settings(db_path))
        await app.replay(str(replay_file))

        token = await app.components["storage"].get_token(MINT)
        assert token is not None
        assert token.meta["discovered_via"] == "swap"
