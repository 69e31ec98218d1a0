"""
structlog configuration for Tokenflow.

Every record carries an ISO-8601 UTC timestamp and the level; JSON records
name the event `event_type` (structlog's `event` renamed). Query context
travels as keywords: `mint`, `wallet_id`, `signature`, `slot`, `strategy`.
Values that look like endpoint URLs have their `api-key` query parameter
masked, since RPC URLs embed Helius keys.

LOG_FORMAT=json (default) renders one JSON object per line on stderr;
anything else uses the console renderer. LOG_LEVEL sets the threshold.

This module imports nothing from backend_tokenflow so any package can log.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import Any

import structlog

_API_KEY_RE = re.compile(r"(api-?key=)[^&\s\"']+", re.IGNORECASE)


def _rename_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def mask_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace api-key query values in string fields with ***."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "key=" in value.lower():
            event_dict[key] = _API_KEY_RE.sub(r"\1***", value)
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Arguments default to LOG_LEVEL and LOG_FORMAT."""
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    render = (fmt or os.getenv("LOG_FORMAT") or "json").strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        mask_secrets,
    ]
    if render == "json":
        processors += [_rename_event, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("block_scan_done", mint=mint, transfers=12)

    renders as {"event_type": "block_scan_done", "mint": "...", "transfers": 12,
    "timestamp": "...", "level": "info", "logger": "backend_tokenflow.discovery.block_scan"}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_query(mint: str, wallet_id: str | None = None) -> structlog.BoundLogger:
    """Logger with the query scope bound; wallet_id only for scoped queries."""
    context: dict[str, Any] = {"mint": mint}
    if wallet_id:
        context["wallet_id"] = wallet_id
    return get_logger("backend_tokenflow.query").bind(**context)
