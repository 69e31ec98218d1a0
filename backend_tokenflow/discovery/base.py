"""
Discovery strategy contract.

A strategy turns a DiscoveryQuery into transfer records using one upstream
path. `iter_transfers` is an async generator used by the streaming
orchestrator; `discover` collects it into a list for the batch path and never
raises: a failure ends the strategy early and whatever was collected is returned.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence, TypeVar

from backend_tokenflow.core.exceptions import RpcError
from backend_tokenflow.parser.models import DiscoveryQuery, TransferRecord
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

# Failures of a single fetch (one block, transaction, account or page): logged and skipped
UNIT_ERRORS = (RpcError, ValueError, TypeError, KeyError)

T = TypeVar("T")


def sample_evenly(items: Sequence[T], cap: int) -> list[T]:
    """Deterministic down-sample: even stride through items when len(items) > cap."""
    if cap <= 0:
        return []
    if len(items) <= cap:
        return list(items)
    step = len(items) / cap
    return [items[int(i * step)] for i in range(cap)]


class DiscoveryStrategy(ABC):
    name = "strategy"

    @abstractmethod
    def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        """Yield transfers newest-first where the source is time-ordered."""

    async def discover(self, query: DiscoveryQuery, cutoff_ms: int) -> list[TransferRecord]:
        transfers: list[TransferRecord] = []
        try:
            async for record in self.iter_transfers(query, cutoff_ms):
                transfers.append(record)
        except Exception as e:
            logger.warning(
                "discovery_strategy_failed",
                strategy=self.name,
                mint=query.mint,
                collected=len(transfers),
                error=str(e),
            )
        logger.info(
            "discovery_strategy_done",
            strategy=self.name,
            mint=query.mint,
            wallet_id=query.wallet,
            transfers=len(transfers),
        )
        return transfers
