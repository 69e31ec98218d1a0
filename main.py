"""
Main entrypoint: FastAPI transfer-query server.

Env: SOLANA_RPC_URL, HELIUS_API_KEY, API_HOST, API_PORT, LOG_LEVEL, TOKENFLOW_* tuning.

Equivalent: uvicorn backend_tokenflow.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Load config and run the API server in the main thread."""
    from backend_tokenflow.config.env import load_tokenflow_env, mask_api_key

    load_tokenflow_env()
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    from backend_tokenflow.config.settings import get_settings

    settings = get_settings()
    logger.info(
        "main_config_loaded",
        rpc_url=mask_api_key(settings.rpc_url),
        helius_configured=bool(settings.helius_api_key),
        lookback_seconds=settings.lookback_seconds,
    )

    from backend_tokenflow.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
