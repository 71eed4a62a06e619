"""
Error taxonomy and response normalization.

Provides:
- ApiError, PartialFailureError and MissingProjectIdError
- Normalization of HTTP responses into a body or an ApiError
- The retry predicate used by the request executor
"""

from cloud_common.errors.exceptions import (
    ApiError,
    MissingProjectIdError,
    PartialFailureError,
)
from cloud_common.errors.normalizer import (
    ParsedResponse,
    handle_resp,
    parse_http_resp_body,
    parse_http_resp_message,
    should_retry_request,
)

__all__ = [
    # Exceptions
    "ApiError",
    "PartialFailureError",
    "MissingProjectIdError",
    # Normalization
    "ParsedResponse",
    "parse_http_resp_message",
    "parse_http_resp_body",
    "handle_resp",
    "should_retry_request",
]
