"""
Tests for balance-delta extraction and decimals resolution.

Covers per-owner net change, account closures, mint filtering, owner-less
snapshots and the explicit-decimals → known-token → default fallback order.
"""

from __future__ import annotations

import math

from backend_tokenflow.parser.balance_delta import extract_balance_deltas, parse_raw_amount
from backend_tokenflow.parser.decimals import (
    DEFAULT_DECIMALS,
    KNOWN_TOKEN_DECIMALS,
    resolve_decimals,
    to_ui_amount,
)
from backend_tokenflow.parser.models import BalanceSnapshot, ParsedBlock

BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def snap(index: int, owner: str | None, amount: str, mint: str = "X", decimals: int | None = 0) -> BalanceSnapshot:
    return BalanceSnapshot(account_index=index, owner=owner, mint=mint, raw_amount=amount, decimals=decimals)


def test_delta_is_post_minus_pre():
    """Owner going from a to b gets exactly one delta of b - a."""
    for a, b in [(1000, 400), (0, 5), (7, 1_000_000_000_000_000_000)]:
        deltas = extract_balance_deltas([snap(1, "E", str(a))], [snap(1, "E", str(b))], "X")
        assert len(deltas) == 1
        assert deltas[0].owner == "E"
        assert deltas[0].change == b - a


def test_new_account_counts_from_zero():
    """Post snapshot with no pre snapshot: change is the full post amount."""
    deltas = extract_balance_deltas([], [snap(2, "Bob", "600")], "X")
    assert [(d.owner, d.change) for d in deltas] == [("Bob", 600)]


def test_account_closure_is_full_withdrawal():
    """Carol's account disappears after the transaction: change is -250."""
    deltas = extract_balance_deltas([snap(3, "Carol", "250")], [], "X")
    assert len(deltas) == 1
    assert deltas[0].owner == "Carol"
    assert deltas[0].change == -250
    assert deltas[0].account_index == "3"


def test_closure_of_empty_account_emits_nothing():
    assert extract_balance_deltas([snap(3, "Carol", "0")], [], "X") == []


def test_unchanged_balance_emits_nothing():
    assert extract_balance_deltas([snap(1, "A", "10")], [snap(1, "A", "10")], "X") == []


def test_other_mints_are_ignored():
    pre = [snap(1, "A", "100", mint="Y")]
    post = [snap(1, "A", "0", mint="Y"), snap(2, "B", "100", mint="Y")]
    assert extract_balance_deltas(pre, post, "X") == []


def test_snapshot_without_owner_is_skipped():
    deltas = extract_balance_deltas([], [snap(1, None, "100"), snap(2, "B", "50")], "X")
    assert [d.owner for d in deltas] == ["B"]


def test_malformed_amount_fails_closed_to_zero():
    assert parse_raw_amount("not-a-number") == 0
    assert parse_raw_amount(None) == 0
    assert parse_raw_amount(" 42 ") == 42
    deltas = extract_balance_deltas([snap(1, "A", "garbage")], [snap(1, "A", "30")], "X")
    assert deltas[0].change == 30


def test_explicit_decimals_beat_known_table():
    """BONK is 5 in the known table; a snapshot saying 2 wins."""
    assert KNOWN_TOKEN_DECIMALS[BONK] == 5
    assert resolve_decimals([snap(1, "A", "1", mint=BONK, decimals=2)], BONK) == 2


def test_known_table_then_default():
    assert resolve_decimals([snap(1, "A", "1", mint=BONK, decimals=None)], BONK) == 5
    assert resolve_decimals([], "UnknownMint111") == DEFAULT_DECIMALS


def test_decimals_from_other_mint_not_used():
    assert resolve_decimals([snap(1, "A", "1", mint="Y", decimals=9)], "X") == DEFAULT_DECIMALS


def test_to_ui_amount():
    assert to_ui_amount(1_500_000, 6) == 1.5
    assert to_ui_amount(600, 0) == 600.0
    assert to_ui_amount(-250, 0) == 250.0
    assert to_ui_amount(0, 6) is None
    big = to_ui_amount(10 ** 400, 0)
    assert big is None or math.isfinite(big)


def test_malformed_account_index_skips_snapshot_not_block():
    def tx(sig: str, index) -> dict:
        return {
            "transaction": {"signatures": [sig]},
            "meta": {
                "preTokenBalances": [{"accountIndex": index, "owner": "A", "mint": "X", "uiTokenAmount": {"amount": "5"}}],
                "postTokenBalances": [{"accountIndex": 1, "owner": "A", "mint": "X", "uiTokenAmount": {"amount": "2"}}],
            },
        }

    block = ParsedBlock.from_rpc(9, {"blockTime": 1_700_000_000, "transactions": [tx("bad", "x1"), tx("good", 1)]})
    assert [t.signature for t in block.transactions] == ["bad", "good"]
    bad, good = block.transactions
    assert bad.pre_balances == ()
    assert len(bad.post_balances) == 1
    assert [d.change for d in extract_balance_deltas(good.pre_balances, good.post_balances, "X")] == [-3]


def test_malformed_slot_drops_only_that_transaction():
    good = {"transaction": {"signatures": ["good"]}, "meta": {}}
    bad = {"transaction": {"signatures": ["bad"]}, "slot": "not-a-slot", "meta": {}}
    block = ParsedBlock.from_rpc(9, {"blockTime": 1_700_000_000, "transactions": [bad, good]})
    assert [t.signature for t in block.transactions] == ["good"]
