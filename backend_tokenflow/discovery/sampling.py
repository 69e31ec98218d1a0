"""
Sampling strategy: probe recent signatures of a sample of the mint's holders.

Last-resort fallback for tokens with no external index when block scanning
found nothing. Token accounts are enumerated with getProgramAccounts
(dataSize 165 + memcmp on the mint at offset 0) and down-sampled with an even
stride so the same population always yields the same sample.
"""

from __future__ import annotations

from typing import AsyncIterator

from backend_tokenflow.discovery.base import UNIT_ERRORS, DiscoveryStrategy, sample_evenly
from backend_tokenflow.discovery.block_scan import TransactionParser
from backend_tokenflow.parser.models import DiscoveryQuery, TransferRecord
from backend_tokenflow.parser.synthesizer import parse_transaction_transfers
from backend_tokenflow.rpc.client import SolanaRpcClient
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ACCOUNTS = 100
DEFAULT_SIGNATURES_PER_ACCOUNT = 50
DEFAULT_MAX_RESULTS = 500
PROGRESS_EVERY = 10


class SamplingStrategy(DiscoveryStrategy):
    name = "sampling"

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        max_accounts: int = DEFAULT_MAX_ACCOUNTS,
        signatures_per_account: int = DEFAULT_SIGNATURES_PER_ACCOUNT,
        max_results: int | None = DEFAULT_MAX_RESULTS,
        parse_transaction: TransactionParser = parse_transaction_transfers,
    ) -> None:
        self._rpc = rpc
        self._max_accounts = max_accounts
        self._signatures_per_account = signatures_per_account
        self._max_results = max_results
        self._parse = parse_transaction

    async def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        accounts = await self._rpc.get_token_accounts_for_mint(query.mint)
        if not accounts:
            logger.warning("sampling_no_token_accounts", mint=query.mint)
            return
        sampled = sample_evenly(accounts, self._max_accounts)
        logger.info(
            "sampling_started",
            mint=query.mint,
            sampled=len(sampled),
            total_accounts=len(accounts),
        )
        produced = 0
        processed = 0
        for account in sampled:
            try:
                signatures = await self._rpc.get_signatures_for_address(
                    account, limit=self._signatures_per_account
                )
            except UNIT_ERRORS as e:
                logger.debug("sampling_account_skipped", account=account, error=str(e))
                continue
            for sig in signatures[: self._signatures_per_account]:
                if sig.block_time is not None and sig.block_time * 1000 < cutoff_ms:
                    break
                try:
                    tx = await self._rpc.get_transaction(sig.signature)
                except UNIT_ERRORS as e:
                    logger.debug("sampling_tx_skipped", signature=sig.signature, error=str(e))
                    continue
                if tx is None or tx.block_time is None or tx.block_time * 1000 < cutoff_ms:
                    continue
                for record in self._parse(tx, query.mint):
                    produced += 1
                    yield record
            processed += 1
            if processed % PROGRESS_EVERY == 0:
                logger.info(
                    "sampling_progress",
                    processed=processed,
                    sampled=len(sampled),
                    transfers=produced,
                )
            if self._max_results is not None and produced >= self._max_results:
                break
