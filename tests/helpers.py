"""
Test helpers: builders for jsonParsed transaction payloads, plus in-memory fakes for the RPC
and Helius clients so strategies, streaming and the service run without network.
"""

from __future__ import annotations

from typing import Any

from backend_tokenflow.parser.models import (
    MintInfo,
    ParsedBlock,
    SignatureInfo,
    TokenAccount,
    TokenTransaction,
)

MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"


def balance(account: int, owner: str | None, amount: str, mint: str = "X", decimals: int | None = 0) -> dict[str, Any]:
    """One preTokenBalances / postTokenBalances entry."""
    ui: dict[str, Any] = {"amount": amount}
    if decimals is not None:
        ui["decimals"] = decimals
    item: dict[str, Any] = {"accountIndex": account, "mint": mint, "uiTokenAmount": ui}
    if owner is not None:
        item["owner"] = owner
    return item


def raw_tx(
    signature: str,
    pre: list[dict[str, Any]],
    post: list[dict[str, Any]],
    *,
    slot: int = 100,
    block_time: int | None = 1_700_000_000,
) -> dict[str, Any]:
    """getTransaction-style jsonParsed payload."""
    return {
        "slot": slot,
        "blockTime": block_time,
        "transaction": {"signatures": [signature], "message": {"accountKeys": []}},
        "meta": {"err": None, "preTokenBalances": pre, "postTokenBalances": post},
    }


def make_tx(
    signature: str,
    pre: list[dict[str, Any]],
    post: list[dict[str, Any]],
    **kwargs: Any,
) -> TokenTransaction:
    tx = TokenTransaction.from_rpc(raw_tx(signature, pre, post, **kwargs))
    assert tx is not None
    return tx


def transfer_tx(
    signature: str,
    sender: str,
    receiver: str,
    amount: int,
    *,
    mint: str = MINT,
    block_time: int | None = 1_700_000_000,
    decimals: int = 0,
) -> TokenTransaction:
    """A simple one-sender one-receiver transaction moving amount raw units."""
    return make_tx(
        signature,
        [balance(1, sender, str(amount), mint, decimals)],
        [
            balance(1, sender, "0", mint, decimals),
            balance(2, receiver, str(amount), mint, decimals),
        ],
        block_time=block_time,
    )


class FakeRpc:
    """In-memory stand-in for SolanaRpcClient."""

    def __init__(self, slot: int = 1000) -> None:
        self.slot = slot
        self.slot_error: Exception | None = None
        self.blocks: dict[int, ParsedBlock] = {}
        self.block_errors: dict[int, Exception] = {}
        self.signatures: dict[str, list[SignatureInfo]] = {}
        self.transactions: dict[str, TokenTransaction] = {}
        self.tx_errors: dict[str, Exception] = {}
        self.mint_accounts: list[str] = []
        self.owner_accounts: list[TokenAccount] = []
        self.owner_accounts_error: Exception | None = None
        self.mint_info: MintInfo | None = None
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def add_signed(self, address: str, tx: TokenTransaction) -> None:
        self.transactions[tx.signature] = tx
        self.signatures.setdefault(address, []).append(
            SignatureInfo(signature=tx.signature, slot=tx.slot, err=None, block_time=tx.block_time)
        )

    async def aclose(self) -> None:
        self.closed = True

    async def get_slot(self) -> int:
        self.calls.append(("get_slot", None))
        if self.slot_error is not None:
            raise self.slot_error
        return self.slot

    async def get_block(self, slot: int) -> ParsedBlock | None:
        self.calls.append(("get_block", slot))
        if slot in self.block_errors:
            raise self.block_errors[slot]
        return self.blocks.get(slot)

    async def get_signatures_for_address(self, address: str, limit: int = 1000, before: str | None = None) -> list[SignatureInfo]:
        self.calls.append(("get_signatures_for_address", address))
        return list(self.signatures.get(address, []))[:limit]

    async def get_transaction(self, signature: str) -> TokenTransaction | None:
        self.calls.append(("get_transaction", signature))
        if signature in self.tx_errors:
            raise self.tx_errors[signature]
        return self.transactions.get(signature)

    async def get_token_accounts_for_mint(self, mint: str) -> list[str]:
        self.calls.append(("get_token_accounts_for_mint", mint))
        return list(self.mint_accounts)

    async def get_token_accounts_by_owner(self, owner: str, mint: str) -> list[TokenAccount]:
        self.calls.append(("get_token_accounts_by_owner", owner))
        if self.owner_accounts_error is not None:
            raise self.owner_accounts_error
        return list(self.owner_accounts)

    async def get_mint_info(self, mint: str) -> MintInfo | None:
        self.calls.append(("get_mint_info", mint))
        return self.mint_info

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


class FakeHelius:
    """In-memory stand-in for HeliusSearchClient; serves pages in order."""

    def __init__(self, pages: list[list[dict[str, Any]] | None] | None = None, api_key: bool = True) -> None:
        self.pages = list(pages or [])
        self.api_key = api_key
        self.requests: list[dict[str, Any]] = []
        self.error: Exception | None = None
        self.closed = False

    def has_api_key(self) -> bool:
        return self.api_key

    async def aclose(self) -> None:
        self.closed = True

    async def search_page(self, *, mint: str, account: str | None = None, limit: int = 1000, before: str | None = None):
        self.requests.append({"mint": mint, "account": account, "limit": limit, "before": before})
        if self.error is not None:
            raise self.error
        if not self.pages:
            return []
        return self.pages.pop(0)


def search_tx(
    signature: str,
    block_time: int,
    transfers: list[dict[str, Any]],
    slot: int = 200,
) -> dict[str, Any]:
    """Enhanced transaction as returned by the Helius search endpoint."""
    return {"signature": signature, "blockTime": block_time, "slot": slot, "tokenTransfers": transfers}


def token_transfer(from_user: str | None, to_user: str | None, amount: Any, mint: str = MINT) -> dict[str, Any]:
    return {
        "mint": mint,
        "fromUserAccount": from_user,
        "toUserAccount": to_user,
        "fromTokenAccount": None,
        "toTokenAccount": None,
        "tokenAmount": amount,
    }


async def no_sleep(_seconds: float) -> None:
    return None


