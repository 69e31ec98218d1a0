"""
Transfer query service: wires clients, strategies and merging per query.

Every query gets its own RPC client, Helius client (and circuit breaker) and
merger, so concurrent queries share no mutable state.

Batch (`get_transfers`):
- token-wide: indexed search → block scan → sampling; the first strategy that
  returns anything wins.
- wallet-scoped: indexed search, signed transactions and token accounts all
  run; results are merged.

Streaming (`iter_transfer_batches` / `stream_transfers`):
- token-wide: indexed search (smaller pages), then a wider block scan only if
  nothing was found.
- wallet-scoped: indexed search, signed transactions, token accounts.
"""

from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Callable

from solders.pubkey import Pubkey

from backend_tokenflow.config.settings import TransferConfig
from backend_tokenflow.core.exceptions import RpcConnectionError, RpcError
from backend_tokenflow.discovery.base import DiscoveryStrategy
from backend_tokenflow.discovery.block_scan import STREAM_MAX_BLOCKS, BlockScanStrategy
from backend_tokenflow.discovery.indexed_search import (
    DEFAULT_PAGE_LIMIT,
    STREAM_PAGE_LIMIT,
    IndexedSearchStrategy,
)
from backend_tokenflow.discovery.sampling import SamplingStrategy
from backend_tokenflow.discovery.wallet import SignedTransactionsStrategy, TokenAccountsStrategy
from backend_tokenflow.helius.search import HeliusSearchClient
from backend_tokenflow.ingestion.merge import TransferMerger, sort_transfers
from backend_tokenflow.ingestion.stream import BatchCallback, TransferStream, deliver_batch
from backend_tokenflow.parser.models import DiscoveryQuery, MintInfo, TokenAccount, TransferRecord
from backend_tokenflow.parser.synthesizer import (
    parse_transaction_by_shape,
    parse_transaction_transfers,
)
from backend_tokenflow.rpc.client import SolanaRpcClient
from backend_tokenflow.tokenflow_logging import bind_query, get_logger

logger = get_logger(__name__)

RPC_ACCESSIBLE = "accessible"
RPC_FAILED = "failed"
RPC_RATE_LIMITED = "rate-limited"
RPC_AUTH_REQUIRED = "auth-required"


def validate_address(address: str) -> bool:
    """True if address parses as a base58 Solana public key."""
    if not address or not address.strip():
        return False
    try:
        Pubkey.from_string(address.strip())
    except Exception:
        return False
    return True


class TransferService:
    def __init__(
        self,
        config: TransferConfig,
        *,
        rpc_factory: Callable[[], SolanaRpcClient] | None = None,
        helius_factory: Callable[[], HeliusSearchClient] | None = None,
    ) -> None:
        self.config = config
        self._rpc_factory = rpc_factory or self._default_rpc
        self._helius_factory = helius_factory or self._default_helius

    @classmethod
    def from_env(cls) -> "TransferService":
        return cls(TransferConfig.from_env())

    def _default_rpc(self) -> SolanaRpcClient:
        return SolanaRpcClient(
            self.config.rpc_url,
            timeout_sec=self.config.rpc_timeout_sec,
            max_retries=self.config.max_retries,
            request_delay_sec=self.config.request_delay_sec,
        )

    def _default_helius(self) -> HeliusSearchClient:
        return HeliusSearchClient(
            self.config.helius_api_key,
            timeout_sec=self.config.rpc_timeout_sec,
            max_retries=self.config.max_retries,
        )

    @contextlib.asynccontextmanager
    async def _clients(self) -> AsyncIterator[tuple[SolanaRpcClient, HeliusSearchClient]]:
        rpc = self._rpc_factory()
        helius = self._helius_factory()
        try:
            yield rpc, helius
        finally:
            await helius.aclose()
            await rpc.aclose()

    def _token_parser(self):
        if self.config.shape_aware_synthesis:
            return parse_transaction_by_shape
        return parse_transaction_transfers

    def _scoped_strategies(
        self,
        rpc: SolanaRpcClient,
        helius: HeliusSearchClient,
        *,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> list[DiscoveryStrategy]:
        return [
            IndexedSearchStrategy(helius, page_limit=page_limit),
            SignedTransactionsStrategy(
                rpc,
                max_signatures=self.config.max_signatures_per_query,
                max_transactions=self.config.max_transactions_to_process,
            ),
            TokenAccountsStrategy(
                rpc,
                max_signatures=self.config.max_signatures_per_query,
                max_transactions=self.config.max_transactions_to_process,
            ),
        ]

    def _token_wide_strategies(
        self, rpc: SolanaRpcClient, helius: HeliusSearchClient
    ) -> list[DiscoveryStrategy]:
        parse = self._token_parser()
        return [
            IndexedSearchStrategy(helius),
            BlockScanStrategy(rpc, parse_transaction=parse),
            SamplingStrategy(rpc, parse_transaction=parse),
        ]

    def _stream_strategies(
        self, query: DiscoveryQuery, rpc: SolanaRpcClient, helius: HeliusSearchClient
    ) -> list[DiscoveryStrategy]:
        if query.is_scoped:
            return self._scoped_strategies(rpc, helius, page_limit=STREAM_PAGE_LIMIT)
        return [
            IndexedSearchStrategy(helius, page_limit=STREAM_PAGE_LIMIT),
            BlockScanStrategy(
                rpc,
                max_blocks=STREAM_MAX_BLOCKS,
                max_results=None,
                parse_transaction=self._token_parser(),
            ),
        ]

    @staticmethod
    async def _check_connectivity(rpc: SolanaRpcClient) -> int:
        try:
            return await rpc.get_slot()
        except Exception as e:
            raise RpcConnectionError(f"RPC connection failed: {e}") from e

    async def get_transfers(self, query: DiscoveryQuery) -> list[TransferRecord]:
        """All transfers of query.mint within the lookback window, newest first."""
        log = bind_query(query.mint, query.wallet)
        cutoff_ms = query.cutoff_ms()
        merger = TransferMerger()
        async with self._clients() as (rpc, helius):
            slot = await self._check_connectivity(rpc)
            log.info("transfer_query_started", slot=slot, lookback_seconds=query.lookback_seconds)
            if query.is_scoped:
                for strategy in self._scoped_strategies(rpc, helius):
                    found = await strategy.discover(query, cutoff_ms)
                    merger.add_all(t for t in found if t.timestamp_ms >= cutoff_ms)
            else:
                for strategy in self._token_wide_strategies(rpc, helius):
                    found = await strategy.discover(query, cutoff_ms)
                    found = [t for t in found if t.timestamp_ms >= cutoff_ms]
                    if found:
                        merger.add_all(found)
                        log.info("transfer_query_strategy_selected", strategy=strategy.name)
                        break
        transfers = sort_transfers(merger.transfers)
        log.info("transfer_query_done", transfers=len(transfers))
        return transfers

    async def iter_transfer_batches(
        self, query: DiscoveryQuery
    ) -> AsyncIterator[list[TransferRecord]]:
        """Async generator of deduplicated batches; raises RpcConnectionError on a fatal failure."""
        async with self._clients() as (rpc, helius):
            stream = TransferStream(
                query,
                self._stream_strategies(query, rpc, helius),
                flush_threshold=self.config.flush_threshold,
                stop_after_first_productive=not query.is_scoped,
                connectivity_check=rpc.get_slot,
            )
            async for batch in stream.batches():
                yield batch

    async def stream_transfers(self, query: DiscoveryQuery, on_batch: BatchCallback) -> None:
        """Deliver batches to on_batch (sync or async) as they are discovered."""
        async for batch in self.iter_transfer_batches(query):
            await deliver_batch(on_batch, batch)

    async def get_token_accounts(self, wallet: str, mint: str) -> list[TokenAccount]:
        async with self._clients() as (rpc, _):
            return await rpc.get_token_accounts_by_owner(wallet, mint)

    async def get_mint_info(self, mint: str) -> MintInfo | None:
        async with self._clients() as (rpc, _):
            return await rpc.get_mint_info(mint)

    async def check_status(self) -> dict[str, Any]:
        """Probe the RPC endpoint and report Helius key presence."""
        status: dict[str, Any] = {
            "rpc": RPC_FAILED,
            "slot": None,
            "helius_configured": bool(self.config.helius_api_key),
            "error": None,
        }
        async with self._clients() as (rpc, _):
            try:
                status["slot"] = await rpc.get_slot()
                status["rpc"] = RPC_ACCESSIBLE
            except RpcError as e:
                if e.code == 429:
                    status["rpc"] = RPC_RATE_LIMITED
                elif e.code in (401, 403):
                    status["rpc"] = RPC_AUTH_REQUIRED
                status["error"] = str(e)
                logger.warning("rpc_status_probe_failed", status=status["rpc"], error=str(e))
        return status
