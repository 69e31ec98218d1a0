"""
Application settings for transfer discovery.

Typed settings loaded from environment variables (.env supported) with defaults
for every tuning knob. One TransferConfig is built per process and passed to the
service; the service builds fresh clients and strategies per query from it.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_tokenflow.config.env import (
    env_bool,
    env_float,
    env_int,
    get_helius_api_key,
    get_solana_rpc_url,
    load_tokenflow_env,
)

# Common token addresses for reference
COMMON_TOKENS = {
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "USDT": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
    "SOL": "So11111111111111111111111111111111111111112",
    "BONK": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
    "JITO": "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn",
    "RAY": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",
    "JUP": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
}

DEFAULT_LOOKBACK_SECONDS = 600
DEFAULT_REQUEST_DELAY_MS = 50
DEFAULT_MAX_RETRIES = 3
DEFAULT_RPC_TIMEOUT_SEC = 30.0
DEFAULT_MAX_SIGNATURES = 1000
DEFAULT_MAX_TRANSACTIONS = 150
DEFAULT_FLUSH_THRESHOLD = 10


@dataclass
class TransferConfig:
    """Configuration for transfer discovery (RPC, Helius, pacing, budgets)."""

    rpc_url: str
    helius_api_key: str | None = None
    lookback_seconds: int = DEFAULT_LOOKBACK_SECONDS
    request_delay_ms: int = DEFAULT_REQUEST_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    rpc_timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC
    max_signatures_per_query: int = DEFAULT_MAX_SIGNATURES
    max_transactions_to_process: int = DEFAULT_MAX_TRANSACTIONS
    flush_threshold: int = DEFAULT_FLUSH_THRESHOLD
    shape_aware_synthesis: bool = False

    @property
    def request_delay_sec(self) -> float:
        return max(0, self.request_delay_ms) / 1000.0

    @classmethod
    def from_env(cls) -> "TransferConfig":
        load_tokenflow_env()
        return cls(
            rpc_url=get_solana_rpc_url(),
            helius_api_key=get_helius_api_key(),
            lookback_seconds=env_int("TOKENFLOW_LOOKBACK_SECONDS", DEFAULT_LOOKBACK_SECONDS),
            request_delay_ms=env_int("TOKENFLOW_REQUEST_DELAY_MS", DEFAULT_REQUEST_DELAY_MS),
            max_retries=max(1, env_int("TOKENFLOW_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
            rpc_timeout_sec=env_float("TOKENFLOW_RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC),
            max_signatures_per_query=min(
                1000, max(1, env_int("TOKENFLOW_MAX_SIGNATURES", DEFAULT_MAX_SIGNATURES))
            ),
            max_transactions_to_process=max(
                1, env_int("TOKENFLOW_MAX_TRANSACTIONS", DEFAULT_MAX_TRANSACTIONS)
            ),
            flush_threshold=max(1, env_int("TOKENFLOW_FLUSH_THRESHOLD", DEFAULT_FLUSH_THRESHOLD)),
            shape_aware_synthesis=env_bool("TOKENFLOW_SHAPE_AWARE"),
        )


def get_settings() -> TransferConfig:
    """Return the current application settings (read from env on each call)."""
    return TransferConfig.from_env()
