"""
Application-level exceptions.

Per-unit upstream failures (RpcError, RateLimitError) are caught by discovery
strategies and logged; TransferQueryError and subclasses abort a whole query and
reach the caller (API returns 502, CLI exits non-zero).
"""

from __future__ import annotations

from typing import Any


class TokenflowError(Exception):
    """Base class for all Tokenflow errors."""


class RpcError(TokenflowError):
    """JSON-RPC call failed (error payload, missing result, or transport failure after retries)."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class RateLimitError(RpcError):
    """Upstream kept answering HTTP 429 after all retries."""

    def __init__(self, message: str = "Rate limited (429), retries exhausted") -> None:
        super().__init__(message, code=429)


class TransferQueryError(TokenflowError):
    """Fatal failure of a transfer query; surfaced to the caller."""


class RpcConnectionError(TransferQueryError):
    """Initial connectivity check against the RPC endpoint failed."""
