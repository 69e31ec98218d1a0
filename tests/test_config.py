"""
Tests for env resolution and TransferConfig.from_env.
"""

from __future__ import annotations

import pytest

from backend_tokenflow.config.env import (
    MAINNET_RPC_URL,
    extract_helius_api_key,
    get_helius_api_key,
    get_helius_search_url,
    get_solana_rpc_url,
    mask_api_key,
)
from backend_tokenflow.config.settings import DEFAULT_LOOKBACK_SECONDS, TransferConfig

ENV_NAMES = (
    "SOLANA_RPC_URL",
    "HELIUS_API_KEY",
    "TOKENFLOW_LOOKBACK_SECONDS",
    "TOKENFLOW_REQUEST_DELAY_MS",
    "TOKENFLOW_MAX_RETRIES",
    "TOKENFLOW_MAX_SIGNATURES",
    "TOKENFLOW_FLUSH_THRESHOLD",
    "TOKENFLOW_SHAPE_AWARE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_extract_helius_api_key():
    assert extract_helius_api_key("https://mainnet.helius-rpc.com/?api-key=abc") == "abc"
    assert extract_helius_api_key("https://rpc.example/?apiKey=xyz&x=1") == "xyz"
    assert extract_helius_api_key("https://api.mainnet-beta.solana.com") is None
    assert extract_helius_api_key("") is None


def test_rpc_url_resolution(monkeypatch):
    assert get_solana_rpc_url() == MAINNET_RPC_URL
    monkeypatch.setenv("HELIUS_API_KEY", "k1")
    assert get_solana_rpc_url() == "https://mainnet.helius-rpc.com/?api-key=k1"
    monkeypatch.setenv("SOLANA_RPC_URL", "http://localhost:8899")
    assert get_solana_rpc_url() == "http://localhost:8899"


def test_helius_key_falls_back_to_rpc_url(monkeypatch):
    assert get_helius_api_key() is None
    monkeypatch.setenv("SOLANA_RPC_URL", "https://mainnet.helius-rpc.com/?api-key=fromurl")
    assert get_helius_api_key() == "fromurl"
    monkeypatch.setenv("HELIUS_API_KEY", "explicit")
    assert get_helius_api_key() == "explicit"


def test_search_url_and_masking():
    assert get_helius_search_url(None) is None
    url = get_helius_search_url("secret")
    assert url is not None and "secret" in url
    assert "secret" not in mask_api_key(url)


def test_config_defaults():
    config = TransferConfig.from_env()
    assert config.rpc_url == MAINNET_RPC_URL
    assert config.helius_api_key is None
    assert config.lookback_seconds == DEFAULT_LOOKBACK_SECONDS
    assert config.request_delay_sec == pytest.approx(0.05)
    assert config.shape_aware_synthesis is False


def test_config_overrides_and_bounds(monkeypatch):
    monkeypatch.setenv("TOKENFLOW_LOOKBACK_SECONDS", "120")
    monkeypatch.setenv("TOKENFLOW_MAX_RETRIES", "0")
    monkeypatch.setenv("TOKENFLOW_MAX_SIGNATURES", "5000")
    monkeypatch.setenv("TOKENFLOW_FLUSH_THRESHOLD", "junk")
    monkeypatch.setenv("TOKENFLOW_SHAPE_AWARE", "true")
    config = TransferConfig.from_env()
    assert config.lookback_seconds == 120
    assert config.max_retries == 1
    assert config.max_signatures_per_query == 1000
    assert config.flush_threshold == 10
    assert config.shape_aware_synthesis is True
