"""
Merge coordination for transfers found by several strategies.

Records are identified by (signature, from, to, amount); the first occurrence
of a key wins and later duplicates are dropped. Ordering of the final result is
by timestamp, newest first, with ties keeping their merge order.
"""

from __future__ import annotations

from typing import Iterable

from backend_tokenflow.parser.models import TransferRecord


def merge_transfers(
    existing: Iterable[TransferRecord],
    incoming: Iterable[TransferRecord],
) -> list[TransferRecord]:
    """existing followed by every incoming record whose key is not already present."""
    merger = TransferMerger()
    merger.add_all(existing)
    merger.add_all(incoming)
    return merger.transfers


def sort_transfers(transfers: Iterable[TransferRecord]) -> list[TransferRecord]:
    return sorted(transfers, key=lambda t: t.timestamp_ms, reverse=True)


class TransferMerger:
    """Incremental deduplication for one query. Not shared across queries."""

    def __init__(self) -> None:
        self._seen: set[tuple[str, str, str, float]] = set()
        self._transfers: list[TransferRecord] = []

    def accept(self, record: TransferRecord) -> bool:
        """Keep record if its key is new. Returns False for a duplicate."""
        key = record.dedup_key
        if key in self._seen:
            return False
        self._seen.add(key)
        self._transfers.append(record)
        return True

    def add_all(self, records: Iterable[TransferRecord]) -> list[TransferRecord]:
        """Accept each record; return the ones that were new."""
        return [r for r in records if self.accept(r)]

    @property
    def transfers(self) -> list[TransferRecord]:
        return list(self._transfers)

    def __len__(self) -> int:
        return len(self._transfers)

    def __contains__(self, record: object) -> bool:
        return isinstance(record, TransferRecord) and record.dedup_key in self._seen
