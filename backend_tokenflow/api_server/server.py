"""
FastAPI server: read-only transfer queries over Solana RPC and Helius.

Exposes GET /transfers (batch), GET /transfers/stream (NDJSON, one line per
batch), token-account and mint lookups, and status/health probes. Every
request builds its own TransferService query; nothing is cached between requests.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from backend_tokenflow import __version__
from backend_tokenflow.core.exceptions import TransferQueryError
from backend_tokenflow.parser.models import DiscoveryQuery, TransferRecord
from backend_tokenflow.service import TransferService, validate_address
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

MAX_LOOKBACK_SECONDS = 7 * 24 * 3600


# -----------------------------------------------------------------------------
# Dependency
# -----------------------------------------------------------------------------

def get_service() -> TransferService:
    """Dependency: service configured from env for this request."""
    return TransferService.from_env()


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------

class TransferModel(BaseModel):
    """One reconstructed transfer."""

    signature: str = Field(..., description="Transaction signature")
    timestamp: int = Field(..., description="Block time in epoch milliseconds")
    direction: str = Field(..., description="sent | received (meaningful for wallet-scoped queries)")
    amount: float = Field(..., gt=0, description="Amount in UI units")
    from_address: str = Field(..., description="Sender owner address, or Unknown")
    to_address: str = Field(..., description="Receiver owner address, or Unknown")
    slot: int = Field(..., description="Slot of the transaction")

    @classmethod
    def from_record(cls, record: TransferRecord) -> "TransferModel":
        return cls(**record.to_dict())


class TransfersResponse(BaseModel):
    """GET /transfers response."""

    mint: str
    wallet: str | None = None
    lookback_seconds: int
    count: int
    transfers: list[TransferModel] = Field(default_factory=list)


class TokenAccountModel(BaseModel):
    address: str
    balance: float


class TokenAccountsResponse(BaseModel):
    """GET /wallet/{address}/token-accounts response."""

    wallet: str
    mint: str
    accounts: list[TokenAccountModel] = Field(default_factory=list)


class MintResponse(BaseModel):
    """GET /token/{mint} response."""

    mint: str
    decimals: int = Field(..., ge=0)
    supply: float | None = Field(None, description="Supply in UI units")


class StatusResponse(BaseModel):
    """GET /status response."""

    rpc: str = Field(..., description="accessible | failed | rate-limited | auth-required")
    slot: int | None = None
    helius_configured: bool
    error: str | None = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _require_address(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{label} must be non-empty")
    if not validate_address(value):
        raise HTTPException(status_code=400, detail=f"Invalid Solana {label} address")
    return value


def _build_query(
    mint: str,
    wallet: str | None,
    lookback_seconds: int | None,
    service: TransferService,
) -> DiscoveryQuery:
    mint = _require_address(mint, "mint")
    if wallet is not None and wallet.strip():
        wallet = _require_address(wallet, "wallet")
    else:
        wallet = None
    return DiscoveryQuery(
        mint=mint,
        wallet=wallet,
        lookback_seconds=lookback_seconds or service.config.lookback_seconds,
    )


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend Tokenflow API",
    description="Recent SPL token transfers reconstructed from Solana balance changes.",
    version=__version__,
)


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}


@app.get("/status", response_model=StatusResponse)
async def status(service: TransferService = Depends(get_service)) -> StatusResponse:
    """Probe the RPC endpoint (getSlot) and report whether a Helius key is configured."""
    return StatusResponse(**await service.check_status())


@app.get("/transfers", response_model=TransfersResponse)
async def get_transfers(
    mint: str = Query(..., description="Token mint address"),
    wallet: str | None = Query(None, description="Restrict to transfers touching this wallet"),
    lookback_seconds: int | None = Query(None, ge=1, le=MAX_LOOKBACK_SECONDS),
    service: TransferService = Depends(get_service),
) -> TransfersResponse:
    """
    Transfers of a mint within the lookback window, newest first.

    Returns 400 for an invalid address and 502 when the RPC endpoint is unreachable.
    """
    query = _build_query(mint, wallet, lookback_seconds, service)
    try:
        transfers = await service.get_transfers(query)
    except TransferQueryError as e:
        logger.error("transfers_query_failed", mint=query.mint, wallet_id=query.wallet, error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e
    return TransfersResponse(
        mint=query.mint,
        wallet=query.wallet,
        lookback_seconds=query.lookback_seconds,
        count=len(transfers),
        transfers=[TransferModel.from_record(t) for t in transfers],
    )


@app.get("/transfers/stream")
async def stream_transfers(
    mint: str = Query(..., description="Token mint address"),
    wallet: str | None = Query(None, description="Restrict to transfers touching this wallet"),
    lookback_seconds: int | None = Query(None, ge=1, le=MAX_LOOKBACK_SECONDS),
    service: TransferService = Depends(get_service),
) -> StreamingResponse:
    """
    NDJSON stream: one `{"batch": [...]}` line per delivered batch. A fatal error
    after the response has started is reported as a final `{"error": ...}` line.
    """
    query = _build_query(mint, wallet, lookback_seconds, service)

    async def lines() -> AsyncIterator[str]:
        try:
            async for batch in service.iter_transfer_batches(query):
                yield json.dumps({"batch": [t.to_dict() for t in batch]}) + "\n"
        except TransferQueryError as e:
            logger.error("transfers_stream_failed", mint=query.mint, wallet_id=query.wallet, error=str(e))
            yield json.dumps({"error": str(e)}) + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")


@app.get("/wallet/{address}/token-accounts", response_model=TokenAccountsResponse)
async def wallet_token_accounts(
    address: str,
    mint: str = Query(..., description="Token mint address"),
    service: TransferService = Depends(get_service),
) -> TokenAccountsResponse:
    """The wallet's token accounts for mint, with UI balances."""
    address = _require_address(address, "wallet")
    mint = _require_address(mint, "mint")
    try:
        accounts = await service.get_token_accounts(address, mint)
    except Exception as e:
        logger.error("token_accounts_failed", wallet_id=address, mint=mint, error=str(e))
        raise HTTPException(status_code=502, detail="Failed to fetch token accounts") from e
    return TokenAccountsResponse(
        wallet=address,
        mint=mint,
        accounts=[TokenAccountModel(**a.to_dict()) for a in accounts],
    )


@app.get("/token/{mint}", response_model=MintResponse)
async def token_info(
    mint: str,
    service: TransferService = Depends(get_service),
) -> MintResponse:
    """Decimals and supply of a mint. 404 if the account is not a parsed mint."""
    mint = _require_address(mint, "mint")
    try:
        info = await service.get_mint_info(mint)
    except Exception as e:
        logger.error("mint_info_failed", mint=mint, error=str(e))
        raise HTTPException(status_code=502, detail="Failed to fetch mint info") from e
    if info is None:
        raise HTTPException(status_code=404, detail=f"No mint account found for {mint[:8]}...")
    return MintResponse(**info.to_dict())


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
