"""Telegram notifications and operator commands."""

import asyncio
from typing import Any

import httpx
import structlog

from ..core.interfaces import Notifier, Storage
from ..core.types import TokenState, TokenStatus
from ..scoring.engine import score
from .format import (
    format_error,
    format_success,
    format_token_status,
    format_top_tokens,
)

logger = structlog.get_logger(__name__)


class TelegramAPIError(Exception):
    """Telegram answered with ok=false."""

    def __init__(self, description: str, status_code: int | None = None) -> None:
        super().__init__(f"Telegram API error: {description}")
        self.description = description
        self.status_code = status_code


class TelegramNotifier(Notifier):
    """Telegram Bot API notification channel."""

    def __init__(
        self,
        bot_token: str,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Telegram notifier.

        Args:
            bot_token: Telegram bot token
            session: Optional HTTP session for requests
        """
        self.bot_token = bot_token
        self.session = session or httpx.AsyncClient(timeout=30.0)
        self.base_url = f"https://api.telegram.org/bot{bot_token}"

        logger.info("Telegram notifier initialized")

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        """Call a Bot API method and return its result.

        Raises:
            TelegramAPIError: If Telegram reports a failure
            httpx.HTTPStatusError: On non-JSON HTTP errors
        """
        url = f"{self.base_url}/{method}"
        response = await self.session.post(url, json=payload)

        try:
            data = response.json()
        except ValueError:
            response.raise_for_status()
            raise TelegramAPIError("invalid response body", response.status_code)

        if not data.get("ok"):
            raise TelegramAPIError(
                data.get("description", "Unknown error"), response.status_code
            )
        return data.get("result")

    async def send(self, chat_id: str, text: str) -> str | None:
        """Send a message.

        Args:
            chat_id: Telegram chat ID
            text: Message text (HTML)

        Returns:
            Message ID of the sent message
        """
        result = await self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
        )
        message_id = (result or {}).get("message_id")
        return str(message_id) if message_id is not None else None

    async def edit(self, chat_id: str, message_id: str, text: str) -> bool:
        """Edit a previously sent message in place.

        Returns:
            True if the message now shows ``text``, False if it could not be edited
        """
        try:
            await self._call(
                "editMessageText",
                {
                    "chat_id": chat_id,
                    "message_id": int(message_id),
                    "text": text,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
            )
            return True
        except TelegramAPIError as e:
            if "message is not modified" in e.description:
                return True
            logger.warning(
                "Failed to edit message",
                chat_id=chat_id,
                message_id=message_id,
                error=e.description,
            )
            return False
        except httpx.HTTPError as e:
            logger.warning(
                "HTTP error editing message",
                chat_id=chat_id,
                message_id=message_id,
                error=str(e),
            )
            return False

    async def get_updates(self, offset: int | None, timeout: int = 25) -> list[dict]:
        """Long-poll for bot updates."""
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        return await self._call("getUpdates", payload) or []

    async def close(self) -> None:
        """Close the notifier and cleanup resources."""
        if self.session:
            await self.session.aclose()
        logger.info("Telegram notifier closed")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


HELP_TEXT = (
    "📚 <b>Commands</b>\n\n"
    "<b>/status &lt;mint&gt;</b> - Score, metrics and risk flags for a token\n"
    "<b>/ignore &lt;mint&gt;</b> - Stop enriching and scoring a token\n"
    "<b>/watch &lt;mint&gt;</b> - Resume tracking a token\n"
    "<b>/top</b> - Top 5 scored tokens in the last 30 minutes\n"
    "<b>/help</b> - Show this message\n\n"
    "<b>Score Thresholds:</b>\n"
    "• &gt;= {score}: Alert sent (no hard risk flags)\n"
    "• &gt;= {score_with_flags}: Alert sent (even with flags)\n"
    "• Score change &gt;= {change}: Update sent"
)


class TelegramCommandHandler:
    """Admin-only command handler for the Telegram bot."""

    def __init__(
        self,
        notifier: TelegramNotifier,
        storage: Storage,
        admin_user_ids: list[int],
        help_values: dict[str, int] | None = None,
    ) -> None:
        """Initialize command handler.

        Args:
            notifier: Telegram notifier used for replies
            storage: Storage for token lookups and status changes
            admin_user_ids: Users allowed to run commands
            help_values: Alert thresholds shown by /help
        """
        self.notifier = notifier
        self.storage = storage
        self.admin_user_ids = admin_user_ids
        self.help_values = help_values or {
            "score": 70,
            "score_with_flags": 80,
            "change": 10,
        }
        self.running = False

        logger.info("Telegram command handler initialized", admins=len(admin_user_ids))

    async def handle_command(self, text: str) -> str:
        """Handle a command and return the reply text."""
        if not text.startswith("/"):
            return format_error("Invalid command format")

        parts = text.split()
        cmd = parts[0].lower().split("@", 1)[0]
        arg = parts[1].strip() if len(parts) > 1 else None

        if cmd == "/start":
            return (
                "🚀 <b>Solana Meme Radar</b>\n\n"
                "I monitor new token launches and alert you when promising "
                "opportunities arise.\n\n" + self._help()
            )
        if cmd == "/help":
            return self._help()
        if cmd == "/status":
            return await self._status(arg)
        if cmd == "/ignore":
            return await self._set_status(arg, TokenStatus.IGNORED)
        if cmd == "/watch":
            return await self._set_status(arg, TokenStatus.ACTIVE)
        if cmd == "/top":
            rows = await self.storage.get_top_scored_tokens(minutes=30, limit=5)
            return format_top_tokens(rows)
        return format_error(f"Unknown command: {cmd}")

    def _help(self) -> str:
        return HELP_TEXT.format(**self.help_values)

    async def _status(self, mint: str | None) -> str:
        if not mint:
            return format_error("Please provide a mint address: /status <mint>")

        token = await self.storage.get_token(mint)
        if token is None:
            return format_error(f"Token not found: {mint}")

        result, metrics, holders, pools = await asyncio.gather(
            self.storage.get_latest_score(mint),
            self.storage.get_latest_token_metrics(mint),
            self.storage.get_latest_holder_snapshot(mint),
            self.storage.get_pools_for_token(mint),
        )
        pool = pools[0] if pools else None

        if result is None:
            result = score(
                TokenState(token=token, metrics=metrics, holders=holders, pool=pool)
            )

        return format_token_status(token, result, metrics, holders, pool)

    async def _set_status(self, mint: str | None, status: TokenStatus) -> str:
        command = "/ignore" if status == TokenStatus.IGNORED else "/watch"
        if not mint:
            return format_error(f"Please provide a mint address: {command} <mint>")

        token = await self.storage.get_token(mint)
        if token is None:
            if status == TokenStatus.ACTIVE:
                return format_error(
                    "Token not found. It will be tracked when first activity is detected."
                )
            return format_error(f"Token not found: {mint}")

        await self.storage.update_token_status(mint, status)
        logger.info("Token status changed via command", token_mint=mint, status=status.value)

        if status == TokenStatus.IGNORED:
            return format_success(f"Token {mint} is now ignored.")
        return format_success(
            f"Token {mint} is now being watched. Will enrich on next cycle."
        )

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Handle an incoming Telegram update.

        Args:
            update: Telegram update object
        """
        try:
            message = update.get("message", {})
            chat_id = message.get("chat", {}).get("id")
            text = message.get("text", "")

            if not chat_id or not text:
                return

            user_id = message.get("from", {}).get("id")
            if user_id not in self.admin_user_ids:
                logger.warning("Unauthorized command attempt", user_id=user_id)
                return

            response = await self.handle_command(text)
            await self.notifier.send(str(chat_id), response)

            logger.info("Command handled", command=text.split()[0], user_id=user_id)

        except Exception as e:
            logger.error("Failed to handle update", error=str(e))

    async def run_polling(self, poll_timeout: int = 25) -> None:
        """Long-poll Telegram for commands until stopped."""
        self.running = True
        offset: int | None = None
        logger.info("Telegram command polling started")

        while self.running:
            try:
                updates = await self.notifier.get_updates(offset, timeout=poll_timeout)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Telegram polling error", error=str(e))
                await asyncio.sleep(5)
                continue

            for update in updates:
                offset = update["update_id"] + 1
                await self.handle_update(update)

        logger.info("Telegram command polling stopped")

    def stop(self) -> None:
        self.running = False
