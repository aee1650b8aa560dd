"""Application assembly and entry point."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import structlog

from ..alerts.state_machine import AlertDispatcher
from ..alerts.telegram import TelegramCommandHandler, TelegramNotifier
from ..config.settings import AppSettings, load_settings
from ..data.helius import HeliusClient
from ..ingest.dedupe import DedupCache
from ..ingest.normalizer import EventNormalizer
from ..ingest.service import IngestionService
from ..ingest.webhook import WebhookListener
from ..persist.storage import SQLiteStorage
from ..workers.cleanup import CleanupWorker
from ..workers.enrich import EnrichWorker
from ..workers.score import ScoreWorker

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "info") -> None:
    """Configure structlog with a minimum level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(),
        ],
    )


class Application:
    """Radar orchestrator: ingestion, enrichment, scoring and alerts."""

    def __init__(self, settings: AppSettings) -> None:
        """Initialize application with assembled components."""
        self.settings = settings
        self.running = False
        self.components = self._assemble(settings)
        self._background: list[asyncio.Task] = []

        logger.info(
            "Application initialized",
            env=settings.env,
            telegram=isinstance(self.components["notifier"], TelegramNotifier),
        )

    def _assemble(self, settings: AppSettings) -> dict[str, Any]:
        """Assemble all components from settings.

        Args:
            settings: Application settings

        Returns:
            Dictionary of assembled components
        """
        components: dict[str, Any] = {}

        storage = SQLiteStorage(settings.database_path)
        components["storage"] = storage

        dedup = DedupCache(settings.dedup_capacities())
        components["dedup"] = dedup
        components["ingestion"] = IngestionService(
            EventNormalizer(dedup),
            storage,
            queue_size=settings.ingest_queue_size,
            workers=settings.ingest_workers,
        )
        components["webhook"] = WebhookListener(
            components["ingestion"],
            storage,
            settings.webhook_secret,
            host=settings.http_host,
            port=settings.http_port,
        )

        components["helius"] = HeliusClient(
            settings.helius_api_key,
            api_base=settings.helius_api_base,
            rpc_url=settings.helius_rpc_url,
            max_retries=settings.fetch_max_retries,
            retry_base_seconds=settings.fetch_retry_base_seconds,
        )

        notifier: TelegramNotifier | None = None
        if settings.telegram_bot_token:
            notifier = TelegramNotifier(settings.telegram_bot_token)
            thresholds = settings.alert_thresholds()
            components["commands"] = TelegramCommandHandler(
                notifier,
                storage,
                settings.telegram_admin_ids,
                help_values={
                    "score": thresholds.score_threshold,
                    "score_with_flags": thresholds.score_threshold_with_flags,
                    "change": thresholds.score_change_threshold,
                },
            )
        else:
            logger.warning("Telegram not configured, alerts will only be logged")
        components["notifier"] = notifier

        components["dispatcher"] = AlertDispatcher(
            storage,
            notifier,
            settings.telegram_chat_id,
            settings.alert_thresholds(),
            enabled=settings.enable_telegram_alerts,
        )

        components["enrich_worker"] = EnrichWorker(
            storage,
            components["helius"],
            batch_size=settings.enrich_batch_size,
            interval_seconds=settings.enrich_interval_seconds,
            stale_seconds=settings.enrich_stale_seconds,
            concurrency=settings.enrich_concurrency,
        )
        components["score_worker"] = ScoreWorker(
            storage,
            components["dispatcher"],
            batch_size=settings.score_batch_size,
            interval_seconds=settings.score_interval_seconds,
        )
        components["cleanup_worker"] = CleanupWorker(
            storage,
            days_to_keep=settings.retention_days,
            interval_seconds=settings.cleanup_interval_seconds,
        )

        return components

    async def check_storage(self) -> None:
        """Initialize storage and verify it is reachable.

        Raises:
            RuntimeError: If the storage health check fails
        """
        storage: SQLiteStorage = self.components["storage"]
        await storage.initialize()
        if not await storage.health_check():
            raise RuntimeError(
                f"Storage health check failed: {self.settings.database_path}"
            )

    async def start(self, serve: bool = True) -> None:
        """Start ingestion, workers and (optionally) the webhook listener.

        Args:
            serve: Start the HTTP listener and Telegram command polling
        """
        await self.check_storage()

        await self.components["ingestion"].start()
        self.components["enrich_worker"].start()
        self.components["score_worker"].start()
        self.components["cleanup_worker"].start()

        if serve:
            await self.components["webhook"].start()
            commands = self.components.get("commands")
            if commands is not None and self.settings.telegram_admin_ids:
                self._background.append(asyncio.create_task(commands.run_polling()))

        self.running = True
        logger.info("Application started", serve=serve)

    async def stop(self) -> None:
        """Stop all components, draining in-flight work."""
        if not self.running:
            return
        logger.info("Stopping application")
        self.running = False

        await self.components["webhook"].stop()

        commands = self.components.get("commands")
        if commands is not None:
            commands.stop()
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background = []

        await self.components["ingestion"].stop()
        await self.components["enrich_worker"].stop()
        await self.components["score_worker"].stop()
        await self.components["cleanup_worker"].stop()

        await self.components["helius"].close()
        if isinstance(self.components["notifier"], TelegramNotifier):
            await self.components["notifier"].close()
        await self.components["storage"].close()

        logger.info("Application stopped")

    async def replay(self, path: str) -> None:
        """Push a saved webhook payload through ingestion once."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        await self.check_storage()
        try:
            result = await self.components["ingestion"].process_payload(payload)
        finally:
            await self.components["helius"].close()
            if isinstance(self.components["notifier"], TelegramNotifier):
                await self.components["notifier"].close()
        logger.info(
            "Replay complete",
            file=path,
            swaps=len(result.swaps),
            pools=len(result.pools),
            tokens=len(result.sightings),
        )


async def main() -> None:
    """Main entry point for the radar."""
    parser = argparse.ArgumentParser(description="Solana Meme Radar")
    parser.add_argument(
        "--config", default="configs/dev.yaml", help="Configuration file path"
    )
    parser.add_argument(
        "--profile",
        default="dev",
        choices=["dev", "prod"],
        help="Configuration profile",
    )
    parser.add_argument(
        "--replay", metavar="FILE", help="Ingest a saved webhook payload and exit"
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.profile, args.config)
        configure_logging(settings.log_level)
        logger.info("Settings loaded", profile=args.profile, config=args.config)

        app = Application(settings)

        if args.replay:
            await app.replay(args.replay)
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await app.start()
        try:
            await stop_event.wait()
            logger.info("Received shutdown signal")
        finally:
            await app.stop()

    except Exception as e:
        logger.error("Fatal error", error=str(e))
        sys.exit(1)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
