"""HTTP listener for Helius webhooks."""

from datetime import UTC, datetime

import structlog
from aiohttp import web

from ..core.interfaces import Storage
from ..data.helius import validate_webhook_secret
from .service import IngestionService

logger = structlog.get_logger(__name__)


class WebhookListener:
    """aiohttp app exposing the webhook and health endpoints."""

    def __init__(
        self,
        ingestion: IngestionService,
        storage: Storage,
        secret: str | None,
        host: str = "0.0.0.0",
        port: int = 3000,
    ) -> None:
        self.ingestion = ingestion
        self.storage = storage
        self.secret = secret
        self.host = host
        self.port = port
        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/", self.handle_root),
                web.get("/health", self.handle_health),
                web.post("/webhook/helius", self.handle_webhook),
            ]
        )
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Webhook listener started", host=self.host, port=self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Webhook listener stopped")

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "name": "Solana Meme Radar",
                "endpoints": {"health": "/health", "webhook": "/webhook/helius"},
            }
        )

    async def handle_health(self, request: web.Request) -> web.Response:
        db_ok = await self.storage.health_check()
        return web.json_response(
            {
                "status": "ok" if db_ok else "degraded",
                "timestamp": datetime.now(UTC).isoformat(),
                "db": "connected" if db_ok else "disconnected",
            }
        )

    async def handle_webhook(self, request: web.Request) -> web.Response:
        """Authenticate, acknowledge and hand the body to ingestion."""
        if not validate_webhook_secret(request.headers, request.query, self.secret):
            logger.warning("Invalid webhook secret", remote=request.remote)
            return web.json_response({"error": "Unauthorized"}, status=401)

        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Webhook body is not valid JSON", remote=request.remote)
            return web.json_response({"error": "Invalid JSON"}, status=400)

        ack = self.ingestion.submit(payload)
        if not ack["received"]:
            return web.json_response(ack, status=503)
        return web.json_response(ack)
