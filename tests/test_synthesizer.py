"""
Tests for transfer synthesis: scoped, pairing, fan-out, fan-in, degenerate.

Uses jsonParsed-style payloads built in helpers (owner names like "Alice" are
fine here; the parser never validates addresses).
"""

from __future__ import annotations

import math

from helpers import balance, make_tx

from backend_tokenflow.parser.models import UNKNOWN_ADDRESS, BalanceDelta, TokenTransaction
from backend_tokenflow.parser.synthesizer import (
    amounts_match,
    degenerate_transfers,
    fan_in_transfers,
    fan_out_transfers,
    find_counterparty,
    pair_transfers,
    parse_transaction_by_shape,
    parse_transaction_for_wallet,
    parse_transaction_transfers,
    synthesize_by_shape,
    synthesize_scoped,
)

TX = TokenTransaction(signature="sig1", slot=10, block_time=1_700_000_000)


def delta(owner: str, change: int) -> BalanceDelta:
    return BalanceDelta(owner=owner, change=change, account_index="0")


def alice_to_bob() -> TokenTransaction:
    """Alice 1000 → 400, Bob new account with 600 (decimals 0)."""
    return make_tx(
        "sigA",
        [balance(1, "Alice", "1000")],
        [balance(1, "Alice", "400"), balance(2, "Bob", "600")],
    )


def test_simple_transfer_token_wide():
    records = parse_transaction_transfers(alice_to_bob(), "X")
    assert len(records) == 1
    r = records[0]
    assert (r.from_address, r.to_address, r.amount) == ("Alice", "Bob", 600)
    assert r.signature == "sigA"
    assert r.timestamp_ms == 1_700_000_000 * 1000
    assert r.slot == 100


def test_scoped_receiver_view():
    records = parse_transaction_for_wallet(alice_to_bob(), "Bob", "X")
    assert len(records) == 1
    r = records[0]
    assert r.direction == "received"
    assert r.amount == 600
    assert r.from_address == "Alice"
    assert r.to_address == "Bob"


def test_scoped_sender_view():
    records = parse_transaction_for_wallet(alice_to_bob(), "Alice", "X")
    assert len(records) == 1
    assert records[0].direction == "sent"
    assert records[0].from_address == "Alice"
    assert records[0].to_address == "Bob"


def test_scoped_wallet_not_involved():
    assert parse_transaction_for_wallet(alice_to_bob(), "Dave", "X") == []


def test_scoped_counterparty_unknown_when_no_opposite_side():
    deltas = [delta("W", 500), delta("Other", 100)]
    assert find_counterparty(deltas, "W") == UNKNOWN_ADDRESS
    records = synthesize_scoped(deltas, "W", 0, TX)
    assert records[0].from_address == UNKNOWN_ADDRESS
    assert records[0].to_address == "W"


def test_pairing_within_tolerance():
    """-1000 and +999 are 0.1% apart: one record, sender's amount."""
    records = pair_transfers([delta("A", -1000), delta("B", 999)], 0, TX)
    assert len(records) == 1
    assert records[0].amount == 1000
    assert records[0].from_address == "A"
    assert records[0].to_address == "B"


def test_pairing_outside_tolerance():
    """-1000 and +900 are 10% apart: no record."""
    assert pair_transfers([delta("A", -1000), delta("B", 900)], 0, TX) == []
    assert not amounts_match(-1000, 900)
    assert amounts_match(-1000, 1000)


def test_unpaired_senders_dropped():
    """Three senders, one receiver matching only the second: exactly one record."""
    deltas = [delta("S1", -500), delta("S2", -300), delta("S3", -120), delta("R", 300)]
    records = pair_transfers(deltas, 0, TX)
    assert len(records) == 1
    assert records[0].from_address == "S2"
    assert records[0].to_address == "R"
    assert records[0].amount == 300


def test_receiver_consumed_once():
    """Two equal senders, one receiver: the first sender wins, the second is dropped."""
    records = pair_transfers([delta("S1", -100), delta("S2", -100), delta("R", 100)], 0, TX)
    assert [(r.from_address, r.to_address) for r in records] == [("S1", "R")]


def test_two_independent_pairs():
    deltas = [delta("A", -100), delta("B", -7), delta("C", 7), delta("D", 100)]
    records = pair_transfers(deltas, 0, TX)
    assert {(r.from_address, r.to_address) for r in records} == {("A", "D"), ("B", "C")}


def test_fan_out_uses_receiver_amounts():
    deltas = [delta("S", -1000), delta("R1", 600), delta("R2", 390)]
    records = fan_out_transfers(deltas, 0, TX)
    assert [(r.from_address, r.to_address, r.amount) for r in records] == [
        ("S", "R1", 600),
        ("S", "R2", 390),
    ]
    assert all(r.direction == "sent" for r in records)


def test_fan_in_uses_sender_amounts():
    deltas = [delta("S1", -40), delta("S2", -60), delta("R", 100)]
    records = fan_in_transfers(deltas, 0, TX)
    assert [(r.from_address, r.to_address, r.amount) for r in records] == [
        ("S1", "R", 40),
        ("S2", "R", 60),
    ]
    assert all(r.direction == "received" for r in records)


def test_fan_shapes_reject_other_shapes():
    one_to_one = [delta("S", -1), delta("R", 1)]
    assert fan_out_transfers(one_to_one, 0, TX) == []
    assert fan_in_transfers(one_to_one, 0, TX) == []


def test_degenerate_one_record_per_delta():
    records = degenerate_transfers([delta("S", -5), delta("R", 3)], 0, TX)
    assert [(r.from_address, r.to_address, r.direction) for r in records] == [
        ("S", UNKNOWN_ADDRESS, "sent"),
        (UNKNOWN_ADDRESS, "R", "received"),
    ]


def test_shape_dispatch():
    fan_out = [delta("S", -3), delta("R1", 1), delta("R2", 2)]
    fan_in = [delta("S1", -1), delta("S2", -2), delta("R", 3)]
    other = [delta("S1", -1), delta("S2", -2), delta("R1", 1), delta("R2", 2)]
    assert len(synthesize_by_shape(fan_out, 0, TX)) == 2
    assert all(r.to_address == "R" for r in synthesize_by_shape(fan_in, 0, TX))
    assert len(synthesize_by_shape(other, 0, TX)) == 4


def test_parse_by_shape_from_transaction():
    tx = make_tx(
        "sigF",
        [balance(1, "S", "1000")],
        [balance(1, "S", "0"), balance(2, "R1", "700"), balance(3, "R2", "300")],
    )
    assert len(parse_transaction_transfers(tx, "X")) == 0
    records = parse_transaction_by_shape(tx, "X")
    assert sorted(r.amount for r in records) == [300, 700]


def test_amounts_always_positive_and_finite():
    """No synthesis path emits a non-positive or non-finite amount."""
    deltas = [delta("A", -10 ** 400), delta("B", 10 ** 400), delta("C", -1), delta("D", 1)]
    paths = [
        pair_transfers(deltas, 0, TX),
        fan_out_transfers(deltas, 0, TX),
        fan_in_transfers(deltas, 0, TX),
        degenerate_transfers(deltas, 0, TX),
        synthesize_by_shape(deltas, 0, TX),
        synthesize_scoped(deltas, "A", 0, TX),
        synthesize_scoped(deltas, "C", 0, TX),
    ]
    for records in paths:
        for r in records:
            assert r.amount > 0
            assert math.isfinite(r.amount)


def test_decimals_applied():
    tx = make_tx(
        "sigD",
        [balance(1, "A", "2500000", decimals=6)],
        [balance(1, "A", "0", decimals=6), balance(2, "B", "2500000", decimals=6)],
    )
    assert parse_transaction_transfers(tx, "X")[0].amount == 2.5


def test_transaction_without_meta_yields_nothing():
    tx = TokenTransaction.from_rpc({"transaction": {"signatures": ["s"]}, "slot": 5})
    assert tx is not None
    assert tx.pre_balances == () and tx.post_balances == ()
    assert parse_transaction_transfers(tx, "X") == []


def test_transaction_without_signature_is_rejected():
    assert TokenTransaction.from_rpc({"transaction": {"signatures": []}}) is None
    assert TokenTransaction.from_rpc({"meta": {}}) is None
