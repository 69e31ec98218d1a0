"""
Block-scan strategy: walk recent slots backward from the chain head.

Needs no external index, so it is the fallback for short lookback windows.
Skipped or unavailable slots are passed over; the walk stops at the first
block older than the cutoff, after max_blocks slots, or at the result ceiling.
"""

from __future__ import annotations

from typing import AsyncIterator, Callable

from backend_tokenflow.discovery.base import UNIT_ERRORS, DiscoveryStrategy
from backend_tokenflow.parser.models import DiscoveryQuery, TokenTransaction, TransferRecord
from backend_tokenflow.parser.synthesizer import parse_transaction_transfers
from backend_tokenflow.rpc.client import SolanaRpcClient
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_BLOCKS = 120
STREAM_MAX_BLOCKS = 500
DEFAULT_MAX_RESULTS = 200

TransactionParser = Callable[[TokenTransaction, str], list[TransferRecord]]


class BlockScanStrategy(DiscoveryStrategy):
    name = "block_scan"

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        max_blocks: int = DEFAULT_MAX_BLOCKS,
        max_results: int | None = DEFAULT_MAX_RESULTS,
        parse_transaction: TransactionParser = parse_transaction_transfers,
    ) -> None:
        self._rpc = rpc
        self._max_blocks = max_blocks
        self._max_results = max_results
        self._parse = parse_transaction

    async def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        start_slot = await self._rpc.get_slot()
        produced = 0
        scanned = 0
        for offset in range(self._max_blocks):
            slot = start_slot - offset
            if slot < 0:
                break
            try:
                block = await self._rpc.get_block(slot)
            except UNIT_ERRORS as e:
                logger.debug("block_scan_slot_skipped", slot=slot, error=str(e))
                continue
            if block is None:
                continue
            scanned += 1
            if block.block_time and block.block_time * 1000 < cutoff_ms:
                logger.info("block_scan_cutoff_reached", slot=slot, blocks_scanned=scanned)
                break
            for tx in block.transactions:
                for record in self._parse(tx, query.mint):
                    produced += 1
                    yield record
            if self._max_results is not None and produced >= self._max_results:
                break
        logger.info(
            "block_scan_done",
            mint=query.mint,
            start_slot=start_slot,
            blocks_scanned=scanned,
            transfers=produced,
        )
