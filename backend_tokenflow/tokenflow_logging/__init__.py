"""
Structured logging for Backend Tokenflow.

JSON logs with timestamp, event_type, mint, wallet_id.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_tokenflow.tokenflow_logging.logger import bind_query, get_logger

__all__ = ["bind_query", "get_logger"]
