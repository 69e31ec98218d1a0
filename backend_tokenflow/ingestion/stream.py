"""
Incremental transfer delivery.

TransferStream runs discovery strategies in order and hands deduplicated
records to the consumer in batches: whenever the buffer reaches the flush
threshold, when a strategy completes, and once more at the end. On a fatal
error (connectivity, or a TransferQueryError from a strategy) the buffer is
flushed before the error propagates; any other strategy failure ends only
that strategy. A stream runs once.

    stream = TransferStream(query, [IndexedSearchStrategy(helius), BlockScanStrategy(rpc)])
    async for batch in stream.batches():
        ...
"""

from __future__ import annotations

import enum
import inspect
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence, Union

from backend_tokenflow.core.exceptions import RpcConnectionError, TransferQueryError
from backend_tokenflow.discovery.base import DiscoveryStrategy
from backend_tokenflow.ingestion.merge import TransferMerger
from backend_tokenflow.parser.models import DiscoveryQuery, TransferRecord
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_FLUSH_THRESHOLD = 10

BatchCallback = Callable[[list[TransferRecord]], Union[None, Awaitable[None]]]


class StreamState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    FLUSHING = "flushing"
    COMPLETED = "completed"
    FAILED = "failed"


async def deliver_batch(on_batch: BatchCallback, batch: list[TransferRecord]) -> None:
    """Invoke a sync or async batch callback."""
    result = on_batch(batch)
    if inspect.isawaitable(result):
        await result


class TransferStream:
    def __init__(
        self,
        query: DiscoveryQuery,
        strategies: Sequence[DiscoveryStrategy],
        *,
        flush_threshold: int = DEFAULT_FLUSH_THRESHOLD,
        stop_after_first_productive: bool = False,
        connectivity_check: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self.query = query
        self.cutoff_ms = query.cutoff_ms()
        self.state = StreamState.IDLE
        self.error: BaseException | None = None
        self.batches_emitted = 0
        self._strategies = list(strategies)
        self._flush_threshold = max(1, flush_threshold)
        self._stop_after_first_productive = stop_after_first_productive
        self._connectivity_check = connectivity_check
        self._merger = TransferMerger()
        self._buffer: list[TransferRecord] = []

    @property
    def seen_count(self) -> int:
        return len(self._merger)

    def _drain(self) -> list[TransferRecord]:
        batch = self._buffer
        self._buffer = []
        self.state = StreamState.FLUSHING
        self.batches_emitted += 1
        return batch

    async def _check_connectivity(self) -> None:
        if self._connectivity_check is None:
            return
        try:
            await self._connectivity_check()
        except Exception as e:
            raise RpcConnectionError(f"RPC connection failed: {e}") from e

    async def batches(self) -> AsyncIterator[list[TransferRecord]]:
        """Yield non-empty batches of new records until discovery is exhausted."""
        if self.state is not StreamState.IDLE:
            raise RuntimeError(f"stream already {self.state.value}")
        self.state = StreamState.RUNNING
        log = logger.bind(mint=self.query.mint, wallet_id=self.query.wallet)
        try:
            await self._check_connectivity()
            for strategy in self._strategies:
                try:
                    async for record in strategy.iter_transfers(self.query, self.cutoff_ms):
                        if record.timestamp_ms < self.cutoff_ms:
                            continue
                        if not self._merger.accept(record):
                            continue
                        self._buffer.append(record)
                        if len(self._buffer) >= self._flush_threshold:
                            yield self._drain()
                            self.state = StreamState.RUNNING
                except TransferQueryError:
                    raise
                except Exception as e:
                    log.warning("stream_strategy_failed", strategy=strategy.name, error=str(e))
                if self._buffer:
                    yield self._drain()
                    self.state = StreamState.RUNNING
                log.info("stream_strategy_done", strategy=strategy.name, seen=self.seen_count)
                if self._stop_after_first_productive and self.seen_count:
                    break
            if self._buffer:
                yield self._drain()
        except Exception as e:
            self.error = e
            if self._buffer:
                yield self._drain()
            self.state = StreamState.FAILED
            log.error("stream_failed", error=str(e), seen=self.seen_count)
            raise
        self.state = StreamState.COMPLETED
        log.info("stream_completed", seen=self.seen_count, batches=self.batches_emitted)

    async def run(self, on_batch: BatchCallback) -> None:
        """Drive the stream, delivering every batch to on_batch."""
        async for batch in self.batches():
            await deliver_batch(on_batch, batch)
