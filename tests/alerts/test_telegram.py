"""Tests for the Telegram notifier and command handler."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
import respx

from radar.alerts.telegram import TelegramAPIError, TelegramCommandHandler, TelegramNotifier
from radar.core.types import ScoreResult, TokenRecord, TokenStatus

BASE = "https://api.telegram.org/bottest_token_123"
MINT = "MemeMint1111111111111111111111111111111111"


class TestTelegramNotifier:
    """Test Telegram notifier functionality."""

    @pytest_asyncio.fixture
    async def notifier(self):
        notifier = TelegramNotifier(bot_token="test_token_123", session=httpx.AsyncClient())
        yield notifier
        await notifier.close()

    @pytest.mark.asyncio
    async def test_initialization(self, notifier):
        assert notifier.bot_token == "test_token_123"
        assert notifier.base_url == BASE

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_returns_message_id(self, notifier):
        """Successful sends return the message id as a string."""
        route = respx.post(f"{BASE}/sendMessage").mock(
            return_value=httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})
        )

        message_id = await notifier.send("chat", "<b>hi</b>")

        assert message_id == "42"
        body = json.loads(route.calls.last.request.content)
        assert body["chat_id"] == "chat"
        assert body["text"] == "<b>hi</b>"
        assert body["parse_mode"] == "HTML"
        assert body["disable_web_page_preview"] is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_api_error_raises(self, notifier):
        respx.post(f"{BASE}/sendMessage").mock(
            return_value=httpx.Response(
                400, json={"ok": False, "description": "Bad Request: chat not found"}
            )
        )

        with pytest.raises(TelegramAPIError, match="chat not found"):
            await notifier.send("chat", "hi")

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_non_json_error_raises(self, notifier):
        respx.post(f"{BASE}/sendMessage").mock(return_value=httpx.Response(502, text="bad gateway"))

        with pytest.raises(httpx.HTTPStatusError):
            await notifier.send("chat", "hi")

    @pytest.mark.asyncio
    @respx.mock
    async def test_edit_success(self, notifier):
        route = respx.post(f"{BASE}/editMessageText").mock(
            return_value=httpx.Response(200, json={"ok": True, "result": {"message_id": 7}})
        )

        assert await notifier.edit("chat", "7", "new text") is True
        body = json.loads(route.calls.last.request.content)
        assert body["message_id"] == 7

    @pytest.mark.asyncio
    @respx.mock
    async def test_edit_not_modified_is_success(self, notifier):
        respx.post(f"{BASE}/editMessageText").mock(
            return_value=httpx.Response(
                400,
                json={
                    "ok": False,
                    "description": "Bad Request: message is not modified",
                },
            )
        )

        assert await notifier.edit("chat", "7", "same text") is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_edit_missing_message_fails(self, notifier):
        respx.post(f"{BASE}/editMessageText").mock(
            return_value=httpx.Response(
                400, json={"ok": False, "description": "Bad Request: message to edit not found"}
            )
        )

        assert await notifier.edit("chat", "7", "text") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_edit_network_error_fails(self, notifier):
        respx.post(f"{BASE}/editMessageText").mock(side_effect=httpx.ConnectError("down"))

        assert await notifier.edit("chat", "7", "text") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_updates(self, notifier):
        route = respx.post(f"{BASE}/getUpdates").mock(
            return_value=httpx.Response(200, json={"ok": True, "result": [{"update_id": 5}]})
        )

        updates = await notifier.get_updates(offset=5, timeout=1)

        assert updates == [{"update_id": 5}]
        assert json.loads(route.calls.last.request.content)["offset"] == 5


class TestTelegramCommandHandler:
    """Test command handling."""

    @pytest.fixture
    def storage(self):
        storage = AsyncMock()
        storage.get_token.return_value = TokenRecord(mint=MINT, symbol="MEME", name="Meme")
        storage.get_latest_score.return_value = ScoreResult(score=77, reasons=("LIQ_20K_PLUS",))
        storage.get_latest_token_metrics.return_value = None
        storage.get_latest_holder_snapshot.return_value = None
        storage.get_pools_for_token.return_value = []
        storage.get_top_scored_tokens.return_value = []
        return storage

    @pytest.fixture
    def handler(self, storage):
        notifier = AsyncMock(spec=TelegramNotifier)
        return TelegramCommandHandler(notifier, storage, admin_user_ids=[12345])

    @pytest.mark.asyncio
    async def test_help_and_start(self, handler):
        help_text = await handler.handle_command("/help")
        assert "/status" in help_text
        assert "&gt;= 70" in help_text

        start_text = await handler.handle_command("/start")
        assert "Solana Meme Radar" in start_text

    @pytest.mark.asyncio
    async def test_status(self, handler, storage):
        text = await handler.handle_command(f"/status {MINT}")

        storage.get_token.assert_awaited_once_with(MINT)
        assert "SCORE: 77/100" in text
        assert "MEME" in text

    @pytest.mark.asyncio
    async def test_status_scores_on_demand(self, handler, storage):
        """Without a stored score the token is scored on the fly."""
        storage.get_latest_score.return_value = None

        text = await handler.handle_command(f"/status {MINT}")

        assert "SCORE: 0/100" in text

    @pytest.mark.asyncio
    async def test_status_requires_mint(self, handler):
        text = await handler.handle_command("/status")
        assert "Please provide a mint address" in text

    @pytest.mark.asyncio
    async def test_status_unknown_token(self, handler, storage):
        storage.get_token.return_value = None

        text = await handler.handle_command(f"/status {MINT}")
        assert "Token not found" in text

    @pytest.mark.asyncio
    async def test_ignore_and_watch(self, handler, storage):
        text = await handler.handle_command(f"/ignore {MINT}")
        storage.update_token_status.assert_awaited_with(MINT, TokenStatus.IGNORED)
        assert "now ignored" in text

        text = await handler.handle_command(f"/watch {MINT}")
        storage.update_token_status.assert_awaited_with(MINT, TokenStatus.ACTIVE)
        assert "now being watched" in text

    @pytest.mark.asyncio
    async def test_watch_unknown_token(self, handler, storage):
        storage.get_token.return_value = None

        text = await handler.handle_command(f"/watch {MINT}")

        assert "first activity" in text
        storage.update_token_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_top(self, handler, storage):
        text = await handler.handle_command("/top")

        storage.get_top_scored_tokens.assert_awaited_once_with(minutes=30, limit=5)
        assert "No tokens found" in text

    @pytest.mark.asyncio
    async def test_unknown_command(self, handler):
        assert "Unknown command" in await handler.handle_command("/bogus")
        assert "Invalid command format" in await handler.handle_command("hello")

    @pytest.mark.asyncio
    async def test_bot_username_suffix(self, handler):
        assert "/status" in await handler.handle_command("/help@RadarBot")

    @pytest.mark.asyncio
    async def test_handle_update_admin(self, handler):
        update = {"message": {"chat": {"id": 999}, "from": {"id": 12345}, "text": "/help"}}

        await handler.handle_update(update)

        handler.notifier.send.assert_awaited_once()
        assert handler.notifier.send.call_args[0][0] == "999"

    @pytest.mark.asyncio
    async def test_handle_update_non_admin(self, handler):
        update = {"message": {"chat": {"id": 999}, "from": {"id": 1}, "text": "/help"}}

        await handler.handle_update(update)

        handler.notifier.send.assert_not_called()
