"""Helius enrichment source and webhook authentication."""

import asyncio
import time
from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.interfaces import EnrichmentSource

logger = structlog.get_logger(__name__)


class FetchError(Exception):
    """A Helius request failed."""

    def __init__(
        self, message: str, status_code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, FetchError) and error.retryable


class TokenBucket:
    """Simple in-memory token bucket rate limiter."""

    def __init__(self, capacity: int, refill_rate: float) -> None:
        """Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket
            refill_rate: Tokens per second refill rate
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.monotonic()

    def try_acquire(self) -> bool:
        """Take a token if one is available."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    async def acquire(self) -> None:
        """Wait until a token is available."""
        while not self.try_acquire():
            await asyncio.sleep(0.05)


def validate_webhook_secret(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    secret: str | None,
) -> bool:
    """Check a webhook request against the shared secret.

    The secret may arrive in the ``authorization`` or ``x-webhook-secret``
    header (raw or as ``Bearer <secret>``) or in the ``secret`` query
    parameter. With no secret configured every request is accepted.

    Args:
        headers: Request headers
        query: Query parameters
        secret: Configured shared secret

    Returns:
        True if the request is authenticated
    """
    if not secret:
        logger.warning("Webhook secret not configured, accepting all requests")
        return True

    lowered = {k.lower(): v for k, v in headers.items()}
    header_value = lowered.get("authorization") or lowered.get("x-webhook-secret")
    if header_value in (secret, f"Bearer {secret}"):
        return True

    if query.get("secret") == secret:
        return True

    logger.warning("Webhook secret validation failed")
    return False


class HeliusClient(EnrichmentSource):
    """Helius REST and RPC client for token enrichment."""

    def __init__(
        self,
        api_key: str | None,
        api_base: str = "https://api.helius.xyz/v0",
        rpc_url: str = "https://mainnet.helius-rpc.com",
        max_retries: int = 3,
        retry_base_seconds: float = 1.0,
        session: httpx.AsyncClient | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        """Initialize Helius client.

        Args:
            api_key: Helius API key; requests are skipped without one
            api_base: REST API base URL
            rpc_url: JSON-RPC endpoint
            max_retries: Attempts per request for retryable failures
            retry_base_seconds: Base delay of the exponential backoff
            session: Optional httpx client session
            rate_limiter: Optional shared rate limiter
        """
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.rpc_url = rpc_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self.session = session or httpx.AsyncClient(timeout=30.0)

        # Rate limiting: 10 requests per second
        self.rate_limiter = rate_limiter or TokenBucket(capacity=10, refill_rate=10)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(
                multiplier=self.retry_base_seconds,
                min=self.retry_base_seconds,
                max=30,
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )

    async def _post(self, url: str, body: Any, operation: str) -> Any:
        """POST JSON with rate limiting and retries.

        Args:
            url: Request URL without the api key
            body: JSON body
            operation: Name used in log events

        Returns:
            Decoded JSON response

        Raises:
            FetchError: On client errors, or once retries are exhausted
        """
        async for attempt in self._retrying():
            with attempt:
                await self.rate_limiter.acquire()
                try:
                    response = await self.session.post(
                        url, params={"api-key": self.api_key}, json=body
                    )
                except (httpx.NetworkError, httpx.TimeoutException) as e:
                    logger.warning(
                        "Network error in Helius request",
                        operation=operation,
                        error=str(e),
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise FetchError(f"{operation}: {e}", retryable=True) from e

                if response.status_code >= 400:
                    retryable = response.status_code >= 500 or response.status_code == 429
                    logger.warning(
                        "HTTP error in Helius request",
                        operation=operation,
                        status_code=response.status_code,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise FetchError(
                        f"{operation}: HTTP {response.status_code}",
                        status_code=response.status_code,
                        retryable=retryable,
                    )

                return response.json()

    async def _rpc(self, method: str, params: list[Any], request_id: str) -> Any:
        data = await self._post(
            self.rpc_url,
            {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
            method,
        )
        if data.get("error"):
            raise FetchError(f"{method}: {data['error'].get('message', data['error'])}")
        return data.get("result") or {}

    async def fetch_token_metadata(self, mint: str) -> dict[str, Any] | None:
        """Fetch on-chain and off-chain token metadata.

        Returns:
            Metadata record, or None if unavailable
        """
        if not self.api_key:
            logger.warning("Helius API key not configured")
            return None

        data = await self._post(
            f"{self.api_base}/token-metadata",
            {"mintAccounts": [mint], "includeOffChain": True, "disableCache": False},
            "token-metadata",
        )
        if isinstance(data, list) and data:
            return data[0]
        return None

    async def fetch_token_info(self, mint: str) -> dict[str, Any] | None:
        """Fetch mint account info.

        Returns:
            Dict with mint_authority, freeze_authority, decimals and supply,
            or None if the account is not a parsed mint
        """
        if not self.api_key:
            logger.warning("Helius API key not configured")
            return None

        result = await self._rpc(
            "getAccountInfo", [mint, {"encoding": "jsonParsed"}], "token-info"
        )
        value = result.get("value") or {}
        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None

        if not parsed or parsed.get("type") != "mint" or not parsed.get("info"):
            return None

        info = parsed["info"]
        return {
            "mint_authority": info.get("mintAuthority"),
            "freeze_authority": info.get("freezeAuthority"),
            "decimals": info.get("decimals"),
            "supply": info.get("supply"),
        }

    async def fetch_token_holders(
        self, mint: str, limit: int = 20
    ) -> list[dict[str, Any]] | None:
        """Fetch the largest token accounts for a mint.

        Returns:
            Up to ``limit`` holder accounts, or None if unavailable
        """
        if not self.api_key:
            logger.warning("Helius API key not configured")
            return None

        result = await self._rpc("getTokenLargestAccounts", [mint], "holder-query")
        value = result.get("value")
        if value is None:
            return None
        return value[:limit]

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
