"""
Retry utilities for HTTP requests.

Retries are bounded by a fixed budget and gated by a predicate over the
response. Transport failures (connection errors, timeouts) are always
retried while budget remains. Delays use exponential backoff with equal
jitter.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport failures that are always worth another attempt
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (aiohttp.ClientError, TimeoutError)


def _log_retry_attempt(
    operation: str,
    attempt: int,
    config: "RetryConfig",
    delay: float,
    reason: str,
) -> None:
    logger.warning(
        "Retryable failure for %s, will retry",
        operation,
        extra={
            "operation": operation,
            "attempt": attempt + 1,
            "max_attempts": config.retries + 1,
            "delay_seconds": round(delay, 2),
            "error_message": reason[:200],
        },
    )


def _log_retry_exhausted(operation: str, config: "RetryConfig", reason: str) -> None:
    logger.error(
        "Max retries exhausted for %s: %s",
        operation,
        reason[:200],
        extra={
            "operation": operation,
            "max_attempts": config.retries + 1,
            "error_message": reason[:200],
        },
    )


@dataclass
class RetryConfig:
    """Configuration for request retry behavior."""

    auto_retry: bool = True
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 32.0
    exponential_base: float = 2.0

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_retries = int(self.max_retries)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        # bool('false') would be True
        if isinstance(self.auto_retry, str):
            self.auto_retry = self.auto_retry.strip().lower() in ("1", "true", "yes")
        else:
            self.auto_retry = bool(self.auto_retry)

    @property
    def retries(self) -> int:
        """Number of retries after the first attempt (0 when auto_retry is off)."""
        return self.max_retries if self.auto_retry else 0

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay with equal jitter to prevent thundering herd.

        Args:
            attempt: 0-indexed attempt number that just failed

        Returns:
            Delay in seconds
        """
        base_delay = self.base_delay * (self.exponential_base**attempt)

        # Equal jitter: half fixed, half random
        jitter = random.uniform(0, base_delay / 2)
        delay = (base_delay / 2) + jitter

        return min(delay, self.max_delay)


DEFAULT_RETRY = RetryConfig()
NO_RETRY = RetryConfig(auto_retry=False)


async def retry_request(
    send: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    should_retry_fn: Callable[[T], bool] | None = None,
    operation: str = "request",
    retry_on: tuple[type[BaseException], ...] = TRANSPORT_ERRORS,
) -> T:
    """
    Run ``send`` until it succeeds or the retry budget is spent.

    Args:
        send: Coroutine factory performing one attempt
        config: Retry configuration (defaults to DEFAULT_RETRY)
        should_retry_fn: Predicate over a completed response; True retries it
        operation: Name used in log records
        retry_on: Exception types treated as transient transport failures

    Returns:
        The last response obtained. When the budget runs out on a retryable
        response, that response is returned for the caller to normalize.

    Raises:
        The last transport error when every attempt failed with one.
    """
    if config is None:
        config = DEFAULT_RETRY

    retries = config.retries

    for attempt in range(retries + 1):
        try:
            response = await send()
        except retry_on as e:
            if attempt >= retries:
                if retries:
                    _log_retry_exhausted(operation, config, str(e))
                raise
            delay = config.get_delay(attempt)
            _log_retry_attempt(operation, attempt, config, delay, str(e))
            await asyncio.sleep(delay)
            continue

        if should_retry_fn is not None and should_retry_fn(response):
            status = getattr(response, "status_code", None)
            if attempt >= retries:
                if retries:
                    _log_retry_exhausted(operation, config, f"HTTP {status}")
                return response
            delay = config.get_delay(attempt)
            _log_retry_attempt(operation, attempt, config, delay, f"HTTP {status}")
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation,
                attempt + 1,
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "total_attempts": retries + 1,
                },
            )

        return response

    # Loop always returns or raises
    raise RuntimeError(f"Retry loop for {operation} exited without a result")


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY",
    "NO_RETRY",
    "TRANSPORT_ERRORS",
    "retry_request",
]
