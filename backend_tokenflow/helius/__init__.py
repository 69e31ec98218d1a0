"""Helius transfer-index search API (paginated, rate-limit aware)."""

from backend_tokenflow.helius.circuit_breaker import RateLimitCircuitBreaker
from backend_tokenflow.helius.search import TRANSFER_TYPES, HeliusSearchClient

__all__ = ["HeliusSearchClient", "RateLimitCircuitBreaker", "TRANSFER_TYPES"]
