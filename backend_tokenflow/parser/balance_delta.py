"""
Balance-delta extraction from pre/post token balances.

For one mint, computes the net signed change of every owner whose token
account balance moved within a transaction. Account closures (pre balance with
no post balance) count as a full withdrawal.
"""

from __future__ import annotations

from typing import Iterable

from backend_tokenflow.parser.models import BalanceDelta, BalanceSnapshot


def parse_raw_amount(raw: str | int | None) -> int:
    """Integer raw amount; anything non-numeric fails closed to 0."""
    if raw is None:
        return 0
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return 0


def extract_balance_deltas(
    pre_balances: Iterable[BalanceSnapshot],
    post_balances: Iterable[BalanceSnapshot],
    mint: str,
) -> list[BalanceDelta]:
    """
    Net balance change per owner for one mint.

    Snapshots without an owner are skipped (the RPC omits it for some account
    types). Zero changes are never emitted.
    """
    pre = [b for b in pre_balances if b.mint == mint]
    post = [b for b in post_balances if b.mint == mint]

    pre_by_index: dict[int, BalanceSnapshot] = {b.account_index: b for b in pre}
    post_indexes = {b.account_index for b in post}

    deltas: list[BalanceDelta] = []
    for snap in post:
        if not snap.owner:
            continue
        before = pre_by_index.get(snap.account_index)
        pre_amount = parse_raw_amount(before.raw_amount) if before is not None else 0
        change = parse_raw_amount(snap.raw_amount) - pre_amount
        if change != 0:
            deltas.append(
                BalanceDelta(
                    owner=snap.owner,
                    change=change,
                    account_index=str(snap.account_index),
                )
            )

    # Closed / emptied accounts
    for snap in pre:
        if not snap.owner or snap.account_index in post_indexes:
            continue
        pre_amount = parse_raw_amount(snap.raw_amount)
        if pre_amount > 0:
            deltas.append(
                BalanceDelta(
                    owner=snap.owner,
                    change=-pre_amount,
                    account_index=str(snap.account_index),
                )
            )
    return deltas
