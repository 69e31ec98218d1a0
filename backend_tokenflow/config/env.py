"""
Environment variable loading for Tokenflow.

- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key; when unset, the api-key query parameter of
  SOLANA_RPC_URL is used (Helius RPC URLs carry it)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from dotenv import load_dotenv

# Project root: config is backend_tokenflow/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_SEARCH_URL_TEMPLATE = "https://api.helius.xyz/v0/transactions/?api-key={key}"


def load_tokenflow_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def extract_helius_api_key(url: str) -> str | None:
    """Return the api-key (or apiKey) query parameter of a URL, or None."""
    try:
        query = parse_qs(urlparse(url).query)
    except ValueError:
        return None
    for name in ("api-key", "apiKey"):
        values = query.get(name)
        if values and values[0].strip():
            return values[0].strip()
    return None


def get_helius_api_key() -> str | None:
    """
    Resolve Helius API key.
    Order: HELIUS_API_KEY > api-key parameter of SOLANA_RPC_URL > None.
    """
    load_tokenflow_env()
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        return key
    return extract_helius_api_key((os.getenv("SOLANA_RPC_URL") or "").strip())


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (Helius mainnet RPC) > public mainnet.
    """
    load_tokenflow_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return MAINNET_RPC_URL


def get_helius_search_url(api_key: str | None) -> str | None:
    """Transfer-index search endpoint for the given key; None without a key."""
    if not api_key:
        return None
    return HELIUS_SEARCH_URL_TEMPLATE.format(key=api_key)


def mask_api_key(url: str) -> str:
    """Hide the api-key value in a URL for logging."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url


def env_int(name: str, default: int) -> int:
    """Integer env var; blank or malformed values fall back to default."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    """Float env var; blank or malformed values fall back to default."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")
