"""Merge coordination and incremental (streaming) delivery of transfers."""

from backend_tokenflow.ingestion.merge import TransferMerger, merge_transfers, sort_transfers
from backend_tokenflow.ingestion.stream import StreamState, TransferStream, deliver_batch

__all__ = [
    "StreamState",
    "TransferMerger",
    "TransferStream",
    "deliver_batch",
    "merge_transfers",
    "sort_transfers",
]
