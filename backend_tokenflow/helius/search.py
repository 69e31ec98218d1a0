"""
Helius transfer-index search client.

POSTs `{query: {accounts?, mints, types}, options: {limit, sortOrder, commitment}, before?}`
to the v0 transactions search endpoint and returns the raw page (a list of
enhanced transactions, each with an embedded `tokenTransfers` array).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import httpx

from backend_tokenflow.config.env import get_helius_search_url
from backend_tokenflow.helius.circuit_breaker import RateLimitCircuitBreaker
from backend_tokenflow.rpc.client import BACKOFF_BASE_SEC, backoff_delay
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

TRANSFER_TYPES = ("TRANSFER", "TOKEN_TRANSFER")
DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RETRIES = 3


class HeliusSearchClient:
    """Paginated transfer search with 429 backoff and a per-instance circuit breaker."""

    def __init__(
        self,
        api_key: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_sec: float = BACKOFF_BASE_SEC,
        breaker: RateLimitCircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip() or None
        self._search_url = get_helius_search_url(self._api_key)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base_sec
        self._sleep = sleep or asyncio.sleep
        self.breaker = breaker or RateLimitCircuitBreaker(sleep=self._sleep)

    async def __aenter__(self) -> "HeliusSearchClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def has_api_key(self) -> bool:
        return self._api_key is not None

    async def _post_with_retry(self, url: str, body: dict[str, Any]) -> httpx.Response:
        """
        POST with capped exponential backoff on 429. The last 429 response is
        returned as-is; network errors are retried and re-raised on the last attempt.
        """
        await self.breaker.before_request()
        for attempt in range(1, self._max_retries + 1):
            try:
                resp = await self._client.post(url, json=body)
            except httpx.HTTPError as e:
                if attempt == self._max_retries:
                    raise
                logger.warning("helius_request_retry", attempt=attempt, error=str(e))
                await self._sleep(self._backoff_base * attempt)
                continue
            if resp.status_code == 429:
                self.breaker.record_rate_limit()
                wait = backoff_delay(attempt, self._backoff_base)
                logger.warning(
                    "helius_rate_limited",
                    rate_limit_count=self.breaker.rate_limit_count,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    wait_sec=wait,
                )
                if attempt < self._max_retries:
                    await self._sleep(wait)
                    continue
                return resp
            if resp.is_success:
                self.breaker.record_success()
            return resp
        raise RuntimeError("unreachable: retry loop exited without a response")

    async def search_page(
        self,
        *,
        mint: str,
        account: str | None = None,
        limit: int = 1000,
        before: str | None = None,
    ) -> list[dict[str, Any]] | None:
        """
        One page of transactions, newest first. Returns None when the API
        answered with a non-success status (caller stops paginating).
        """
        url = self._search_url
        if url is None:
            return None
        query: dict[str, Any] = {"mints": [mint], "types": list(TRANSFER_TYPES)}
        if account:
            query["accounts"] = [account]
        body: dict[str, Any] = {
            "query": query,
            "options": {"limit": limit, "sortOrder": "desc", "commitment": "confirmed"},
        }
        if before:
            body["before"] = before
        resp = await self._post_with_retry(url, body)
        if not resp.is_success:
            logger.warning("helius_api_error", status_code=resp.status_code, mint=mint)
            return None
        try:
            page = resp.json()
        except ValueError as e:
            logger.warning("helius_invalid_json", mint=mint, error=str(e))
            return None
        return [tx for tx in page if isinstance(tx, dict)] if isinstance(page, list) else []
