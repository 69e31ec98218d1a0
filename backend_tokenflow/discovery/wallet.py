"""
Wallet-scoped RPC strategies.

- signed transactions: signatures of the wallet address itself;
- token accounts: signatures of each of the wallet's token accounts for the
  mint (catches incoming transfers the wallet never signed).

Both walk signatures newest-first, stop at the first one at or before the
cutoff, process at most max_transactions per address, and synthesize in
scoped mode so every record has the wallet on one side.
"""

from __future__ import annotations

from typing import AsyncIterator, Sequence

from backend_tokenflow.discovery.base import UNIT_ERRORS, DiscoveryStrategy
from backend_tokenflow.parser.models import DiscoveryQuery, SignatureInfo, TransferRecord
from backend_tokenflow.parser.synthesizer import parse_transaction_for_wallet
from backend_tokenflow.rpc.client import SolanaRpcClient
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_SIGNATURES = 1000
DEFAULT_MAX_TRANSACTIONS = 150


class _WalletSignatureStrategy(DiscoveryStrategy):
    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        max_signatures: int = DEFAULT_MAX_SIGNATURES,
        max_transactions: int = DEFAULT_MAX_TRANSACTIONS,
    ) -> None:
        self._rpc = rpc
        self._max_signatures = max_signatures
        self._max_transactions = max_transactions

    async def _transfers_for_signatures(
        self,
        signatures: Sequence[SignatureInfo],
        wallet: str,
        mint: str,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        processed = 0
        for sig in signatures:
            if processed >= self._max_transactions:
                break
            if sig.block_time is None:
                continue
            if sig.block_time * 1000 <= cutoff_ms:
                break
            processed += 1
            try:
                tx = await self._rpc.get_transaction(sig.signature)
            except UNIT_ERRORS as e:
                logger.warning("wallet_tx_fetch_failed", signature=sig.signature, error=str(e))
                continue
            if tx is None:
                continue
            for record in parse_transaction_for_wallet(tx, wallet, mint):
                yield record


class SignedTransactionsStrategy(_WalletSignatureStrategy):
    name = "signed_transactions"

    async def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        if not query.wallet:
            return
        signatures = await self._rpc.get_signatures_for_address(
            query.wallet, limit=self._max_signatures
        )
        logger.info(
            "signed_transactions_signatures",
            wallet_id=query.wallet,
            signature_count=len(signatures),
        )
        async for record in self._transfers_for_signatures(
            signatures, query.wallet, query.mint, cutoff_ms
        ):
            yield record


class TokenAccountsStrategy(_WalletSignatureStrategy):
    name = "token_accounts"

    async def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        if not query.wallet:
            return
        accounts = await self._rpc.get_token_accounts_by_owner(query.wallet, query.mint)
        logger.info("token_accounts_found", wallet_id=query.wallet, count=len(accounts))
        for account in accounts:
            try:
                signatures = await self._rpc.get_signatures_for_address(
                    account.address, limit=self._max_signatures
                )
            except UNIT_ERRORS as e:
                logger.warning(
                    "token_account_signatures_failed",
                    account=account.address,
                    error=str(e),
                )
                continue
            async for record in self._transfers_for_signatures(
                signatures, query.wallet, query.mint, cutoff_ms
            ):
                yield record
