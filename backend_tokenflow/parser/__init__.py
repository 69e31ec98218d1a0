"""
Transfer reconstruction: parsed Solana transactions → token transfer records.

Pure functions over RPC payloads; no network access and no scoring logic.
"""

from backend_tokenflow.parser.balance_delta import extract_balance_deltas
from backend_tokenflow.parser.decimals import resolve_decimals, to_ui_amount
from backend_tokenflow.parser.models import (
    BalanceDelta,
    BalanceSnapshot,
    DiscoveryQuery,
    TokenTransaction,
    TransferRecord,
)
from backend_tokenflow.parser.synthesizer import (
    degenerate_transfers,
    fan_in_transfers,
    fan_out_transfers,
    pair_transfers,
    parse_transaction_by_shape,
    parse_transaction_for_wallet,
    parse_transaction_transfers,
    synthesize_scoped,
)

__all__ = [
    "BalanceDelta",
    "BalanceSnapshot",
    "DiscoveryQuery",
    "TokenTransaction",
    "TransferRecord",
    "degenerate_transfers",
    "extract_balance_deltas",
    "fan_in_transfers",
    "fan_out_transfers",
    "pair_transfers",
    "parse_transaction_by_shape",
    "parse_transaction_for_wallet",
    "parse_transaction_transfers",
    "resolve_decimals",
    "synthesize_scoped",
    "to_ui_amount",
]
