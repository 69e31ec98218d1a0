"""
Backend Tokenflow: read-only SPL token transfer reconstruction.

Rebuilds token transfer events from Solana pre/post token balances, discovers
candidate transactions through Helius search, block scanning and token-account
sampling, and streams de-duplicated transfer batches to API and CLI consumers.
"""

__version__ = "0.1.0"
