"""
Transfer synthesis: balance deltas to directional transfer records.

Operating modes:
- scoped: one record from the queried wallet's point of view, counterparty
  resolved as the first owner whose balance moved the other way;
- pairing: token-wide, greedy first-match pairing of senders and receivers
  within a 0.1% amount tolerance; unmatched legs are dropped;
- fan-out (1 sender : N receivers) and fan-in (N senders : 1 receiver);
- degenerate: one record per delta with the unknown side set to "Unknown".

No mode ever emits a record whose amount is non-positive or non-finite.
Pairing is a heuristic, not a ledger-verified match: ambiguous transactions
(e.g. equal-amount swaps) resolve to the first match in list order.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Sequence

from backend_tokenflow.parser.balance_delta import extract_balance_deltas
from backend_tokenflow.parser.decimals import resolve_decimals, to_ui_amount
from backend_tokenflow.parser.models import (
    DIRECTION_RECEIVED,
    DIRECTION_SENT,
    UNKNOWN_ADDRESS,
    BalanceDelta,
    TokenTransaction,
    TransferRecord,
)

PAIRING_TOLERANCE = 0.001


def _record(
    tx: TokenTransaction,
    *,
    direction: str,
    raw_change: int,
    decimals: int,
    from_address: str,
    to_address: str,
) -> TransferRecord | None:
    amount = to_ui_amount(abs(raw_change), decimals)
    if amount is None:
        return None
    return TransferRecord(
        signature=tx.signature,
        timestamp_ms=tx.timestamp_ms,
        direction=direction,
        amount=amount,
        from_address=from_address,
        to_address=to_address,
        slot=tx.slot,
    )


def _split(deltas: Sequence[BalanceDelta]) -> tuple[list[BalanceDelta], list[BalanceDelta]]:
    senders = [d for d in deltas if d.change < 0]
    receivers = [d for d in deltas if d.change > 0]
    return senders, receivers


def amounts_match(sent: int, received: int, tolerance: float = PAIRING_TOLERANCE) -> bool:
    """True when |sent| and |received| differ by at most tolerance of the larger side."""
    a, b = abs(sent), abs(received)
    return abs(a - b) <= max(a, b) * Fraction(tolerance)


def find_counterparty(deltas: Sequence[BalanceDelta], wallet: str) -> str:
    """First owner whose change has the opposite sign of the wallet's; 'Unknown' otherwise."""
    own = next((d for d in deltas if d.owner == wallet), None)
    if own is None:
        return UNKNOWN_ADDRESS
    for d in deltas:
        if d.owner != wallet and (d.change > 0) != (own.change > 0):
            return d.owner
    return UNKNOWN_ADDRESS


def synthesize_scoped(
    deltas: Sequence[BalanceDelta],
    wallet: str,
    decimals: int,
    tx: TokenTransaction,
) -> list[TransferRecord]:
    """At most one record describing the wallet's own movement."""
    own = next((d for d in deltas if d.owner == wallet), None)
    if own is None or own.change == 0:
        return []
    counterparty = find_counterparty(deltas, wallet)
    received = own.change > 0
    record = _record(
        tx,
        direction=DIRECTION_RECEIVED if received else DIRECTION_SENT,
        raw_change=own.change,
        decimals=decimals,
        from_address=counterparty if received else wallet,
        to_address=wallet if received else counterparty,
    )
    return [record] if record is not None else []


def pair_transfers(
    deltas: Sequence[BalanceDelta],
    decimals: int,
    tx: TokenTransaction,
    tolerance: float = PAIRING_TOLERANCE,
) -> list[TransferRecord]:
    """
    Greedy sender → receiver pairing.

    Each sender takes the first still-unconsumed receiver whose amount is
    within tolerance; unmatched senders and receivers produce nothing, so
    1:N and N:1 shapes are under-counted here (see fan_out / fan_in).
    """
    senders, receivers = _split(deltas)
    consumed: set[int] = set()
    records: list[TransferRecord] = []
    for sender in senders:
        for idx, receiver in enumerate(receivers):
            if idx in consumed:
                continue
            if not amounts_match(sender.change, receiver.change, tolerance):
                continue
            consumed.add(idx)
            record = _record(
                tx,
                direction=DIRECTION_SENT,
                raw_change=sender.change,
                decimals=decimals,
                from_address=sender.owner,
                to_address=receiver.owner,
            )
            if record is not None:
                records.append(record)
            break
    return records


def fan_out_transfers(
    deltas: Sequence[BalanceDelta],
    decimals: int,
    tx: TokenTransaction,
) -> list[TransferRecord]:
    """One sender, several receivers: one record per receiver (receiver's amount)."""
    senders, receivers = _split(deltas)
    if len(senders) != 1 or len(receivers) < 2:
        return []
    sender = senders[0]
    records = []
    for receiver in receivers:
        record = _record(
            tx,
            direction=DIRECTION_SENT,
            raw_change=receiver.change,
            decimals=decimals,
            from_address=sender.owner,
            to_address=receiver.owner,
        )
        if record is not None:
            records.append(record)
    return records


def fan_in_transfers(
    deltas: Sequence[BalanceDelta],
    decimals: int,
    tx: TokenTransaction,
) -> list[TransferRecord]:
    """Several senders, one receiver: one record per sender (sender's amount)."""
    senders, receivers = _split(deltas)
    if len(senders) < 2 or len(receivers) != 1:
        return []
    receiver = receivers[0]
    records = []
    for sender in senders:
        record = _record(
            tx,
            direction=DIRECTION_RECEIVED,
            raw_change=sender.change,
            decimals=decimals,
            from_address=sender.owner,
            to_address=receiver.owner,
        )
        if record is not None:
            records.append(record)
    return records


def degenerate_transfers(
    deltas: Sequence[BalanceDelta],
    decimals: int,
    tx: TokenTransaction,
) -> list[TransferRecord]:
    """One record per delta; the side that cannot be attributed is 'Unknown'."""
    records = []
    for d in deltas:
        received = d.change > 0
        record = _record(
            tx,
            direction=DIRECTION_RECEIVED if received else DIRECTION_SENT,
            raw_change=d.change,
            decimals=decimals,
            from_address=UNKNOWN_ADDRESS if received else d.owner,
            to_address=d.owner if received else UNKNOWN_ADDRESS,
        )
        if record is not None:
            records.append(record)
    return records


def synthesize_by_shape(
    deltas: Sequence[BalanceDelta],
    decimals: int,
    tx: TokenTransaction,
) -> list[TransferRecord]:
    """Fan-out for 1:N, fan-in for N:1, degenerate for every other shape."""
    senders, receivers = _split(deltas)
    if len(senders) == 1 and len(receivers) > 1:
        return fan_out_transfers(deltas, decimals, tx)
    if len(senders) > 1 and len(receivers) == 1:
        return fan_in_transfers(deltas, decimals, tx)
    return degenerate_transfers(deltas, decimals, tx)


def _deltas_and_decimals(tx: TokenTransaction, mint: str) -> tuple[list[BalanceDelta], int]:
    deltas = extract_balance_deltas(tx.pre_balances, tx.post_balances, mint)
    decimals = resolve_decimals((*tx.pre_balances, *tx.post_balances), mint)
    return deltas, decimals


def parse_transaction_transfers(tx: TokenTransaction, mint: str) -> list[TransferRecord]:
    """Token-wide transfers of one transaction (greedy pairing)."""
    deltas, decimals = _deltas_and_decimals(tx, mint)
    if not deltas:
        return []
    return pair_transfers(deltas, decimals, tx)


def parse_transaction_by_shape(tx: TokenTransaction, mint: str) -> list[TransferRecord]:
    """Token-wide transfers of one transaction using the shape-aware dispatch."""
    deltas, decimals = _deltas_and_decimals(tx, mint)
    if not deltas:
        return []
    return synthesize_by_shape(deltas, decimals, tx)


def parse_transaction_for_wallet(
    tx: TokenTransaction,
    wallet: str,
    mint: str,
) -> list[TransferRecord]:
    """The wallet's transfer in one transaction (scoped mode), or []."""
    deltas, decimals = _deltas_and_decimals(tx, mint)
    if not deltas:
        return []
    return synthesize_scoped(deltas, wallet, decimals, tx)
