"""
Async Solana JSON-RPC client: the read-only calls transfer discovery needs.

Responsibilities:
- Issue JSON-RPC requests over httpx with a per-call timeout.
- Space consecutive calls by a fixed delay to respect shared rate limits.
- Retry HTTP 429 and transport errors with capped exponential backoff; raise
  RateLimitError / RpcError once attempts are exhausted.
- Convert results into parser models (SignatureInfo, TokenTransaction, ParsedBlock).
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import Any, Awaitable, Callable

import httpx

from backend_tokenflow.config.env import mask_api_key
from backend_tokenflow.core.exceptions import RateLimitError, RpcError
from backend_tokenflow.parser.models import (
    MintInfo,
    ParsedBlock,
    SignatureInfo,
    TokenAccount,
    TokenTransaction,
)
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
# SPL token account layout size (bytes); mint is the first 32 bytes
TOKEN_ACCOUNT_DATA_SIZE = 165

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_REQUEST_DELAY_SEC = 0.05
BACKOFF_BASE_SEC = 1.0
BACKOFF_CAP_SEC = 10.0

SleepFn = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_sec: float = BACKOFF_BASE_SEC, cap_sec: float = BACKOFF_CAP_SEC) -> float:
    """Capped exponential wait before retrying after attempt (1-based)."""
    return min(base_sec * (2 ** attempt), cap_sec)


class RequestPacer:
    """Min interval between consecutive calls to one upstream (sleeping wait)."""

    def __init__(self, interval_sec: float, sleep: SleepFn | None = None) -> None:
        self._interval = max(0.0, interval_sec)
        self._last = 0.0
        self._sleep = sleep or asyncio.sleep

    async def wait(self) -> None:
        if self._interval <= 0:
            return
        elapsed = time.monotonic() - self._last
        if elapsed < self._interval:
            await self._sleep(self._interval - elapsed)
        self._last = time.monotonic()


class SolanaRpcClient:
    """
    Async JSON-RPC client for one query's lifetime.

    Use as an async context manager, or pass an existing httpx.AsyncClient
    (e.g. one with a MockTransport); the client only closes what it created.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        request_delay_sec: float = DEFAULT_REQUEST_DELAY_SEC,
        backoff_base_sec: float = BACKOFF_BASE_SEC,
        commitment: str = DEFAULT_COMMITMENT,
        sleep: SleepFn | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base_sec
        self._commitment = commitment
        self._sleep = sleep or asyncio.sleep
        self._pacer = RequestPacer(request_delay_sec, sleep=self._sleep)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform one JSON-RPC call; return `result` or raise RpcError / RateLimitError."""
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            await self._pacer.wait()
            try:
                resp = await self._client.post(self._rpc_url, json=body)
            except httpx.HTTPError as e:
                last_error = e
                logger.warning(
                    "rpc_transport_retry",
                    method=method,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    error=str(e),
                )
                if attempt < self._max_retries:
                    await self._sleep(self._backoff_base * attempt)
                continue
            if resp.status_code == 429:
                last_error = RateLimitError()
                wait = backoff_delay(attempt, self._backoff_base)
                logger.warning(
                    "rpc_rate_limited",
                    method=method,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    wait_sec=wait,
                )
                if attempt < self._max_retries:
                    await self._sleep(wait)
                continue
            try:
                resp.raise_for_status()
                data = resp.json()
            except (httpx.HTTPStatusError, ValueError) as e:
                status = resp.status_code if isinstance(e, httpx.HTTPStatusError) else None
                raise RpcError(f"Solana RPC HTTP failure for {method}: {e}", code=status) from e
            if not isinstance(data, dict):
                raise RpcError(f"Solana RPC returned a non-object for {method}")
            if "error" in data and data["error"] is not None:
                err = data["error"]
                if isinstance(err, dict):
                    raise RpcError(
                        f"Solana RPC error: {err.get('message', err)} (code={err.get('code')})",
                        code=err.get("code"),
                        data=err.get("data"),
                    )
                raise RpcError(f"Solana RPC error: {err}")
            return data.get("result")

        if isinstance(last_error, RateLimitError):
            raise last_error
        raise RpcError(
            f"Solana RPC {method} failed after {self._max_retries} attempts "
            f"({mask_api_key(self._rpc_url)}): {last_error}"
        )

    async def get_slot(self) -> int:
        result = await self.call("getSlot", [{"commitment": self._commitment}])
        if result is None:
            raise RpcError("Solana RPC returned no slot")
        return int(result)

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 1000,
        before: str | None = None,
    ) -> list[SignatureInfo]:
        """Signatures touching address, newest first. Malformed items are skipped."""
        opts: dict[str, Any] = {"limit": max(1, min(limit, 1000)), "commitment": self._commitment}
        if before is not None:
            opts["before"] = before
        result = await self.call("getSignaturesForAddress", [address, opts])
        infos: list[SignatureInfo] = []
        for item in result if isinstance(result, list) else []:
            if not isinstance(item, dict) or "signature" not in item:
                continue
            try:
                infos.append(SignatureInfo.from_rpc_item(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("rpc_signature_item_skipped", error=str(e))
        return infos

    async def get_transaction(self, signature: str) -> TokenTransaction | None:
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._commitment,
                },
            ],
        )
        if not isinstance(result, dict):
            return None
        return TokenTransaction.from_rpc(result)

    async def get_block(self, slot: int) -> ParsedBlock | None:
        result = await self.call(
            "getBlock",
            [
                slot,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "transactionDetails": "full",
                    "rewards": False,
                    "commitment": self._commitment,
                },
            ],
        )
        if not isinstance(result, dict):
            return None
        return ParsedBlock.from_rpc(slot, result)

    async def get_program_accounts(
        self,
        program_id: str,
        filters: list[dict[str, Any]],
    ) -> list[str]:
        """Pubkeys of accounts owned by program_id matching filters (account data not fetched)."""
        result = await self.call(
            "getProgramAccounts",
            [
                program_id,
                {
                    "encoding": "base64",
                    "dataSlice": {"offset": 0, "length": 0},
                    "filters": filters,
                    "commitment": self._commitment,
                },
            ],
        )
        out: list[str] = []
        for item in result if isinstance(result, list) else []:
            if isinstance(item, dict) and item.get("pubkey"):
                out.append(str(item["pubkey"]))
        return out

    async def get_token_accounts_for_mint(self, mint: str) -> list[str]:
        """All SPL token accounts holding mint (dataSize + memcmp on the mint field)."""
        return await self.get_program_accounts(
            TOKEN_PROGRAM_ID,
            [
                {"dataSize": TOKEN_ACCOUNT_DATA_SIZE},
                {"memcmp": {"offset": 0, "bytes": mint}},
            ],
        )

    async def get_token_accounts_by_owner(self, owner: str, mint: str) -> list[TokenAccount]:
        result = await self.call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        accounts: list[TokenAccount] = []
        for item in value if isinstance(value, list) else []:
            if not isinstance(item, dict) or not item.get("pubkey"):
                continue
            info = (
                ((item.get("account") or {}).get("data") or {}).get("parsed") or {}
            ).get("info") or {}
            token_amount = info.get("tokenAmount") or {}
            try:
                balance = float(token_amount.get("uiAmount") or 0)
            except (TypeError, ValueError):
                balance = 0.0
            accounts.append(TokenAccount(address=str(item["pubkey"]), balance=balance))
        return accounts

    async def get_mint_info(self, mint: str) -> MintInfo | None:
        """Decimals and UI supply of a mint account; None if it is not a parsed mint."""
        result = await self.call(
            "getAccountInfo",
            [mint, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            return None
        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        info = parsed.get("info") if isinstance(parsed, dict) else None
        if not isinstance(info, dict) or info.get("decimals") is None:
            return None
        try:
            decimals = int(info["decimals"])
        except (TypeError, ValueError):
            return None
        supply = None
        if info.get("supply") is not None:
            try:
                supply = int(info["supply"]) / (10 ** decimals)
            except (TypeError, ValueError, OverflowError):
                supply = None
        return MintInfo(mint=mint, decimals=decimals, supply=supply)
