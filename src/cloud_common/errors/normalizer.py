"""
Normalize HTTP outcomes into a body or an ApiError.

A completed request is examined in two stages: the HTTP message (status
line) and the body. Either stage can produce an ApiError; the body stage wins
when both do, since it carries the API's own error description.
"""

import json
from dataclasses import dataclass
from typing import Any

from cloud_common.errors.exceptions import ApiError
from cloud_common.types import Callback

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503})
RETRYABLE_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


@dataclass
class ParsedResponse:
    """Outcome of normalizing one HTTP exchange."""

    err: Exception | None = None
    body: Any = None
    resp: Any = None


def parse_http_resp_message(resp: Any) -> ParsedResponse:
    """
    Build an ApiError from a non-2xx status.

    Args:
        resp: Response object with ``status_code`` and ``reason``

    Returns:
        ParsedResponse with ``resp`` set, and ``err`` set for non-2xx statuses
    """
    parsed = ParsedResponse(resp=resp)

    if resp.status_code < 200 or resp.status_code > 299:
        parsed.err = ApiError(
            {
                "errors": [],
                "code": resp.status_code,
                "message": resp.reason,
                "response": resp,
            }
        )

    return parsed


def parse_http_resp_body(body: Any) -> ParsedResponse:
    """
    Decode a response body and surface any API error it carries.

    A JSON decode failure does not raise: it is returned as an ApiError.
    """
    parsed = ParsedResponse(body=body)

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
        parsed.body = body

    if isinstance(body, str):
        try:
            parsed.body = json.loads(body)
        except ValueError:
            parsed.err = ApiError("Cannot parse JSON response")

    if isinstance(parsed.body, dict) and parsed.body.get("error"):
        parsed.err = ApiError(parsed.body["error"])

    return parsed


def handle_resp(
    err: Exception | None,
    resp: Any = None,
    body: Any = None,
    callback: Callback | None = None,
) -> ParsedResponse:
    """
    Merge a transport error, the HTTP message and the body into one outcome.

    Later stages override earlier ones: body errors replace status errors,
    which replace transport errors.

    Args:
        err: Transport-level error, if any
        resp: HTTP response, if one was received
        body: Raw response body
        callback: Optional ``callback(err, body, resp)`` invoked with the result

    Returns:
        The merged ParsedResponse
    """
    parsed = ParsedResponse(err=err)

    if resp is not None:
        message = parse_http_resp_message(resp)
        parsed.resp = message.resp
        if message.err is not None:
            parsed.err = message.err

    if body:
        decoded = parse_http_resp_body(body)
        parsed.body = decoded.body
        if decoded.err is not None:
            parsed.err = decoded.err

    if callback is not None:
        callback(parsed.err, parsed.body, parsed.resp)

    return parsed


def should_retry_request(err: Exception | None) -> bool:
    """
    Decide whether a failed request is worth retrying.

    True for rate limiting and transient server statuses (429, 500, 502, 503)
    or when any sub-error reports a rate-limit reason.
    """
    if err is None:
        return False

    if getattr(err, "code", None) in RETRYABLE_STATUS_CODES:
        return True

    for sub_error in getattr(err, "errors", None) or []:
        if isinstance(sub_error, dict) and sub_error.get("reason") in RETRYABLE_REASONS:
            return True

    return False


__all__ = [
    "ParsedResponse",
    "parse_http_resp_message",
    "parse_http_resp_body",
    "handle_resp",
    "should_retry_request",
    "RETRYABLE_STATUS_CODES",
    "RETRYABLE_REASONS",
]
