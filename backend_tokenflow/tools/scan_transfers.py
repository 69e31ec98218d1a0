"""
Print recent transfers of a token (optionally for one wallet) as JSON.

How to run:
    From project root (with .env configured):
        python -m backend_tokenflow.tools.scan_transfers --mint <MINT> --lookback-seconds 600
        python -m backend_tokenflow.tools.scan_transfers --mint USDC --wallet <WALLET> --stream

Required env vars:
    SOLANA_RPC_URL   (defaults to the public mainnet RPC)
    HELIUS_API_KEY   (optional; enables the indexed-search strategy)

Output:
    batch mode: one JSON array on stdout, newest first.
    --stream: one JSON line per delivered batch.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from backend_tokenflow.config.settings import COMMON_TOKENS, TransferConfig
from backend_tokenflow.parser.models import DiscoveryQuery, TransferRecord
from backend_tokenflow.service import TransferService, validate_address
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)


def _resolve_mint(value: str) -> str:
    """Accept a symbol from COMMON_TOKENS (e.g. USDC) or a mint address."""
    return COMMON_TOKENS.get(value.strip().upper(), value.strip())


def _print_batch(batch: list[TransferRecord]) -> None:
    print(json.dumps([t.to_dict() for t in batch]), flush=True)


async def run(mint: str, wallet: str | None, lookback_seconds: int | None, stream: bool) -> int:
    config = TransferConfig.from_env()
    service = TransferService(config)
    query = DiscoveryQuery(
        mint=mint,
        wallet=wallet,
        lookback_seconds=lookback_seconds or config.lookback_seconds,
    )
    if stream:
        await service.stream_transfers(query, _print_batch)
        return 0
    transfers = await service.get_transfers(query)
    print(json.dumps([t.to_dict() for t in transfers], indent=2))
    logger.info("scan_transfers_done", mint=mint, wallet_id=wallet, transfers=len(transfers))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reconstruct recent SPL token transfers from Solana balance changes.",
    )
    parser.add_argument("--mint", required=True, help="Token mint address or symbol (USDC, USDT, SOL, BONK, ...)")
    parser.add_argument("--wallet", default=None, help="Only transfers touching this wallet")
    parser.add_argument("--lookback-seconds", type=int, default=None, help="Window size (default: TOKENFLOW_LOOKBACK_SECONDS or 600)")
    parser.add_argument("--stream", action="store_true", help="Print batches as they are discovered")
    args = parser.parse_args(argv)

    mint = _resolve_mint(args.mint)
    if not validate_address(mint):
        print("ERROR: invalid mint address", file=sys.stderr)
        return 2
    if args.wallet and not validate_address(args.wallet):
        print("ERROR: invalid wallet address", file=sys.stderr)
        return 2
    if args.lookback_seconds is not None and args.lookback_seconds <= 0:
        print("ERROR: --lookback-seconds must be positive", file=sys.stderr)
        return 2
    try:
        return asyncio.run(run(mint, args.wallet, args.lookback_seconds, args.stream))
    except Exception as e:
        logger.exception("scan_transfers_failed", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
