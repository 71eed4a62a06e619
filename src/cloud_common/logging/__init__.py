"""
Structured logging module.

Provides JSON logging with request correlation and context propagation.
"""

from cloud_common.logging.context import (
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from cloud_common.logging.formatters import ConsoleFormatter, JSONFormatter
from cloud_common.logging.setup import generate_request_id, get_logger, setup_logging
from cloud_common.logging.utilities import log_exception, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    "generate_request_id",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
    # Utilities
    "log_with_context",
    "log_exception",
]
