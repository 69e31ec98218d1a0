"""
Data models for token transfer reconstruction.

Snapshots and deltas are per-transaction scratch values; TransferRecord is the
canonical output that flows through merge, streaming and the API. All models
are frozen dataclasses; JSON-RPC payloads are converted with from_rpc_* helpers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

DIRECTION_SENT = "sent"
DIRECTION_RECEIVED = "received"
UNKNOWN_ADDRESS = "Unknown"


@dataclass(frozen=True)
class SignatureInfo:
    """
    Normalized transaction signature info from getSignaturesForAddress.

    Mirrors Solana RPC response fields. The RPC returns these newest first.
    """

    signature: str
    slot: int
    err: Any  # None if success; dict/object from RPC if failed
    block_time: int | None  # Unix timestamp; None if not available
    memo: str | None = None
    confirmation_status: str | None = None  # processed | confirmed | finalized

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        block_time = item.get("blockTime")
        return cls(
            signature=item["signature"],
            slot=int(item.get("slot") or 0),
            err=item.get("err"),
            block_time=int(block_time) if block_time is not None else None,
            memo=item.get("memo"),
            confirmation_status=item.get("confirmationStatus"),
        )


@dataclass(frozen=True)
class BalanceSnapshot:
    """One token account's balance before or after a transaction."""

    account_index: int
    owner: str | None
    """Wallet owning the token account; the RPC omits it for some account types."""
    mint: str
    raw_amount: str
    """Integer balance in the token's smallest unit, as the RPC returns it (string)."""
    decimals: int | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "BalanceSnapshot | None":
        """Build from one preTokenBalances / postTokenBalances entry; None on a bad accountIndex."""
        try:
            account_index = int(item.get("accountIndex", -1))
        except (TypeError, ValueError):
            return None
        ui = item.get("uiTokenAmount") or {}
        decimals = ui.get("decimals")
        try:
            decimals = int(decimals) if decimals is not None else None
        except (TypeError, ValueError):
            decimals = None
        return cls(
            account_index=account_index,
            owner=item.get("owner") or None,
            mint=str(item.get("mint") or ""),
            raw_amount=str(ui.get("amount") if ui.get("amount") is not None else "0"),
            decimals=decimals,
        )


def _snapshots(items: Any) -> tuple[BalanceSnapshot, ...]:
    snapshots = (BalanceSnapshot.from_rpc_item(b) for b in (items or []) if isinstance(b, dict))
    return tuple(s for s in snapshots if s is not None)


@dataclass(frozen=True)
class BalanceDelta:
    """Net change of one owner's balance for one mint within one transaction (never zero)."""

    owner: str
    change: int
    account_index: str


@dataclass(frozen=True)
class TransferRecord:
    """
    A reconstructed token transfer.

    amount is in UI units (raw / 10**decimals). direction is only meaningful
    for wallet-scoped queries. Records are never mutated after creation.
    """

    signature: str
    timestamp_ms: int
    direction: str
    amount: float
    from_address: str
    to_address: str
    slot: int

    @property
    def dedup_key(self) -> tuple[str, str, str, float]:
        """Identity used by the merge coordinator."""
        return (self.signature, self.from_address, self.to_address, self.amount)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict."""
        return {
            "signature": self.signature,
            "timestamp": self.timestamp_ms,
            "direction": self.direction,
            "amount": self.amount,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "slot": self.slot,
        }


@dataclass(frozen=True)
class TokenTransaction:
    """
    The parts of a parsed Solana transaction that transfer reconstruction needs.

    Built from a getTransaction result, or from a getBlock transaction entry
    together with the enclosing block's slot and blockTime.
    """

    signature: str
    slot: int
    block_time: int | None
    pre_balances: tuple[BalanceSnapshot, ...] = ()
    post_balances: tuple[BalanceSnapshot, ...] = ()

    @property
    def timestamp_ms(self) -> int:
        """blockTime in ms; current time when the RPC did not report one."""
        if self.block_time is None:
            return int(time.time() * 1000)
        return self.block_time * 1000

    @classmethod
    def from_rpc(
        cls,
        raw: dict[str, Any],
        *,
        slot: int | None = None,
        block_time: int | None = None,
    ) -> "TokenTransaction | None":
        """
        Parse a jsonParsed transaction payload. Returns None when there is no
        signature. A missing meta yields empty snapshot lists.
        """
        if not isinstance(raw, dict):
            return None
        tx_obj = raw.get("transaction")
        signatures = tx_obj.get("signatures") if isinstance(tx_obj, dict) else None
        if not isinstance(signatures, list) or not signatures or not signatures[0]:
            return None
        meta = raw.get("meta")
        if not isinstance(meta, dict):
            meta = {}
        pre = _snapshots(meta.get("preTokenBalances"))
        post = _snapshots(meta.get("postTokenBalances"))
        bt = raw.get("blockTime")
        if bt is None:
            bt = block_time
        try:
            bt = int(bt) if bt is not None else None
        except (TypeError, ValueError):
            bt = None
        return cls(
            signature=str(signatures[0]),
            slot=int(raw.get("slot") or slot or 0),
            block_time=bt,
            pre_balances=pre,
            post_balances=post,
        )


@dataclass(frozen=True)
class ParsedBlock:
    """A getBlock result reduced to slot, time and its transactions."""

    slot: int
    block_time: int | None
    transactions: tuple[TokenTransaction, ...] = ()

    @classmethod
    def from_rpc(cls, slot: int, raw: dict[str, Any]) -> "ParsedBlock":
        bt = raw.get("blockTime")
        try:
            bt = int(bt) if bt is not None else None
        except (TypeError, ValueError):
            bt = None
        txs: list[TokenTransaction] = []
        for item in raw.get("transactions") or []:
            try:
                tx = TokenTransaction.from_rpc(item, slot=slot, block_time=bt)
            except (TypeError, ValueError):
                continue
            if tx is not None:
                txs.append(tx)
        return cls(slot=slot, block_time=bt, transactions=tuple(txs))


@dataclass(frozen=True)
class TokenAccount:
    """A wallet's token account for one mint."""

    address: str
    balance: float

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "balance": self.balance}


@dataclass(frozen=True)
class MintInfo:
    """Decimals and supply of a mint account."""

    mint: str
    decimals: int
    supply: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"mint": self.mint, "decimals": self.decimals, "supply": self.supply}


@dataclass(frozen=True)
class DiscoveryQuery:
    """
    Caller-provided scope for one transfer query.

    wallet set → per-account strategies; wallet None → token-wide strategies.
    """

    mint: str
    wallet: str | None = None
    lookback_seconds: int = 600
    created_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def is_scoped(self) -> bool:
        return bool(self.wallet)

    def cutoff_ms(self, now_ms: int | None = None) -> int:
        """Earliest timestamp a transfer may have: now - lookback."""
        now = self.created_at_ms if now_ms is None else now_ms
        return now - self.lookback_seconds * 1000
