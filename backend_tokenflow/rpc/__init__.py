"""
Solana RPC access for transfer discovery.

Read-only JSON-RPC calls (signatures, transactions, blocks, program accounts,
token accounts, mint info) with pacing and rate-limit backoff.
"""

from backend_tokenflow.rpc.client import (
    TOKEN_ACCOUNT_DATA_SIZE,
    TOKEN_PROGRAM_ID,
    RequestPacer,
    SolanaRpcClient,
    backoff_delay,
)

__all__ = [
    "TOKEN_ACCOUNT_DATA_SIZE",
    "TOKEN_PROGRAM_ID",
    "RequestPacer",
    "SolanaRpcClient",
    "backoff_delay",
]
