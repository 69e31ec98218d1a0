"""
Indexed-search strategy (Helius transfer index).

Pages newest-first with a before-signature cursor and stops at the first
transaction older than the cutoff, at the page budget, at the result ceiling,
on an empty page, or on an API error. Transfers come pre-segmented from the
index, so each entry of `tokenTransfers` maps to one record without pairing.
"""

from __future__ import annotations

import asyncio
import math
import time
from typing import Any, AsyncIterator, Awaitable, Callable

from backend_tokenflow.discovery.base import DiscoveryStrategy
from backend_tokenflow.helius.search import HeliusSearchClient
from backend_tokenflow.parser.models import (
    DIRECTION_RECEIVED,
    DIRECTION_SENT,
    UNKNOWN_ADDRESS,
    DiscoveryQuery,
    TransferRecord,
)
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_PAGES = 10
DEFAULT_PAGE_LIMIT = 1000
STREAM_PAGE_LIMIT = 200
MAX_RESULTS_SCOPED = 1000
MAX_RESULTS_TOKEN_WIDE = 2000
DEFAULT_PAGE_DELAY_SEC = 0.3


def search_tx_timestamp_ms(tx: dict[str, Any]) -> int:
    """blockTime (or enhanced `timestamp`) in ms; 0 when absent."""
    ts = tx.get("blockTime") or tx.get("timestamp")
    try:
        return int(ts) * 1000 if ts else 0
    except (TypeError, ValueError):
        return 0


def transfers_from_search_tx(
    tx: dict[str, Any],
    mint: str,
    wallet: str | None = None,
) -> list[TransferRecord]:
    """
    Records for one search result. Entries need the mint and a positive amount.
    Each side is the user account, else the token account, else Unknown. Scoped
    queries keep only entries where the wallet is the from or to user account.
    """
    ts_ms = search_tx_timestamp_ms(tx) or int(time.time() * 1000)
    signature = str(tx.get("signature") or "")
    if not signature:
        return []
    slot = int(tx.get("slot") or 0)
    records: list[TransferRecord] = []
    for t in tx.get("tokenTransfers") or []:
        if not isinstance(t, dict) or t.get("mint") != mint:
            continue
        from_user = t.get("fromUserAccount") or None
        to_user = t.get("toUserAccount") or None
        if wallet and wallet not in (from_user, to_user):
            continue
        from_address = from_user or t.get("fromTokenAccount")
        to_address = to_user or t.get("toTokenAccount")
        if not t.get("tokenAmount"):
            continue
        try:
            amount = float(t["tokenAmount"])
        except (TypeError, ValueError):
            continue
        if not math.isfinite(amount) or amount <= 0:
            continue
        if wallet:
            direction = DIRECTION_RECEIVED if to_user == wallet else DIRECTION_SENT
        else:
            direction = DIRECTION_SENT
        records.append(
            TransferRecord(
                signature=signature,
                timestamp_ms=ts_ms,
                direction=direction,
                amount=amount,
                from_address=from_address or UNKNOWN_ADDRESS,
                to_address=to_address or UNKNOWN_ADDRESS,
                slot=slot,
            )
        )
    return records


class IndexedSearchStrategy(DiscoveryStrategy):
    name = "indexed_search"

    def __init__(
        self,
        helius: HeliusSearchClient,
        *,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_results: int | None = None,
        page_delay_sec: float = DEFAULT_PAGE_DELAY_SEC,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._helius = helius
        self._page_limit = page_limit
        self._max_pages = max_pages
        self._max_results = max_results
        self._page_delay = page_delay_sec
        self._sleep = sleep or asyncio.sleep

    def _ceiling(self, query: DiscoveryQuery) -> int:
        if self._max_results is not None:
            return self._max_results
        return MAX_RESULTS_SCOPED if query.is_scoped else MAX_RESULTS_TOKEN_WIDE

    async def iter_transfers(
        self,
        query: DiscoveryQuery,
        cutoff_ms: int,
    ) -> AsyncIterator[TransferRecord]:
        if not self._helius.has_api_key():
            logger.info("indexed_search_skipped", mint=query.mint, reason="no_api_key")
            return
        ceiling = self._ceiling(query)
        before: str | None = None
        produced = 0
        for page_no in range(1, self._max_pages + 1):
            if produced >= ceiling:
                break
            page = await self._helius.search_page(
                mint=query.mint,
                account=query.wallet,
                limit=self._page_limit,
                before=before,
            )
            if not page:
                break
            for tx in page:
                ts_ms = search_tx_timestamp_ms(tx)
                if ts_ms and ts_ms < cutoff_ms:
                    logger.info("indexed_search_cutoff_reached", mint=query.mint, page=page_no)
                    return
                for record in transfers_from_search_tx(tx, query.mint, query.wallet):
                    produced += 1
                    yield record
            before = page[-1].get("signature")
            if not before:
                break
            if self._page_delay > 0:
                await self._sleep(self._page_delay)
