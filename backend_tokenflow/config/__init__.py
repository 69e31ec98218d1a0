"""
Configuration management for Tokenflow.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for RPC, Helius and discovery tuning.
"""

from backend_tokenflow.config.settings import COMMON_TOKENS, TransferConfig, get_settings  # noqa: F401

__all__ = ["COMMON_TOKENS", "TransferConfig", "get_settings"]
