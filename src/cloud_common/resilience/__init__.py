"""
Resilience patterns module.

Components:
    - RetryConfig: retry budget and exponential backoff configuration
    - retry_request: bounded retry loop gated by a response predicate
"""

from .retry import (
    DEFAULT_RETRY,
    NO_RETRY,
    TRANSPORT_ERRORS,
    RetryConfig,
    retry_request,
)

__all__ = [
    "RetryConfig",
    "retry_request",
    "DEFAULT_RETRY",
    "NO_RETRY",
    "TRANSPORT_ERRORS",
]
