"""Token decimals resolution and raw → UI amount conversion."""

from __future__ import annotations

import math
from typing import Iterable

from backend_tokenflow.parser.models import BalanceSnapshot

DEFAULT_DECIMALS = 6

KNOWN_TOKEN_DECIMALS: dict[str, int] = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": 6,  # USDC
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": 6,  # USDT
    "So11111111111111111111111111111111111111112": 9,  # wSOL
    "pumpCmXqMfrsAkQ5r49WcJnRayYRqmXz6ae8H7H9Dfn": 6,  # PUMP
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": 5,  # BONK
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN": 6,  # JUP
    "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R": 6,  # RAY
    "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn": 9,  # JitoSOL
}


def resolve_decimals(snapshots: Iterable[BalanceSnapshot], mint: str) -> int:
    """
    Decimals for a mint: first snapshot carrying explicit decimals, then the
    known-token table, then DEFAULT_DECIMALS.
    """
    for snap in snapshots:
        if snap.mint == mint and snap.decimals is not None:
            return snap.decimals
    return KNOWN_TOKEN_DECIMALS.get(mint, DEFAULT_DECIMALS)


def to_ui_amount(raw: int, decimals: int) -> float | None:
    """raw / 10**decimals; None when the result is not a positive finite number."""
    try:
        amount = abs(raw) / (10 ** max(0, decimals))
    except (OverflowError, TypeError, ZeroDivisionError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount
