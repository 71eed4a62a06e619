"""Logging utility functions."""

import logging
from typing import Any

# LogRecord attributes; passing one in extra raises KeyError
_RESERVED_LOG_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (api_url, http_status, etc.)
                  Note: exc_info=True is supported and handled specially.

    Example:
        log_with_context(
            logger, logging.INFO, "Page fetched",
            api_url=req_opts["uri"],
            results_count=len(items),
        )
    """
    exc_info = kwargs.pop("exc_info", None)

    # Filter out reserved keys to prevent LogRecord conflicts
    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    logger.log(level, msg, exc_info=exc_info, extra=extra)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    ApiError details (``code`` and sub-error reasons) are added as
    ``error_code`` and ``api_errors``.

    Example:
        try:
            await service.request(req_opts)
        except ApiError as e:
            log_exception(logger, e, "Request failed", api_url=req_opts["uri"])
    """
    code = getattr(exc, "code", None)
    if code is not None and "error_code" not in kwargs:
        kwargs["error_code"] = code

    errors = getattr(exc, "errors", None)
    if errors and "api_errors" not in kwargs:
        kwargs["api_errors"] = [
            error.get("reason") for error in errors if isinstance(error, dict)
        ]

    kwargs["error_type"] = type(exc).__name__

    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg

    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=extra)
    else:
        logger.log(level, msg, extra=extra)
