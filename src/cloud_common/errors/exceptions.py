"""
Exception hierarchy for cloud API requests.

ApiError is the terminal error for any failed API call, PartialFailureError
signals batch operations where only some items failed, and
MissingProjectIdError is raised when a request needs a project ID that was
never configured.
"""

import html
import json
from typing import Any

DEFAULT_API_ERROR_MESSAGE = "Error during request."
DEFAULT_PARTIAL_FAILURE_MESSAGE = "A failure occurred during this request."


def _response_body(response: Any) -> str | None:
    """Return the raw body of a response as text, if it has one."""
    body = getattr(response, "body", None)
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if body is None:
        return None
    return str(body)


class ApiError(Exception):
    """
    Error returned by a cloud API.

    Built either from a plain message or from an error body of the form
    ``{"code": ..., "errors": [...], "message": ..., "response": ...}``.

    Attributes:
        code: HTTP status code (None when built from a message)
        errors: Structured sub-errors, each with ``reason`` and ``message``
        response: Raw HTTP response, if any
        message: Human-readable message synthesized from the parts above
    """

    def __init__(self, error_body_or_message: dict[str, Any] | str | None = None):
        self.code: int | None = None
        self.errors: list[dict[str, Any]] | None = None
        self.response: Any = None

        if not isinstance(error_body_or_message, dict):
            self.message = error_body_or_message or ""
            super().__init__(self.message)
            return

        error_body = error_body_or_message
        self.code = error_body.get("code")
        self.errors = error_body.get("errors")
        self.response = error_body.get("response")

        raw_body = _response_body(self.response)

        # The raw body carries the most detailed sub-errors when it is JSON
        try:
            self.errors = json.loads(raw_body)["error"]["errors"]
        except (TypeError, ValueError, KeyError):
            self.errors = error_body.get("errors")

        messages: list[str] = []
        explicit_message = error_body.get("message")
        if explicit_message:
            messages.append(explicit_message)

        if self.errors and len(self.errors) == 1:
            messages.append(self.errors[0].get("message"))
        elif raw_body:
            messages.append(html.unescape(raw_body))
        elif not explicit_message:
            messages.append(DEFAULT_API_ERROR_MESSAGE)

        self.message = " - ".join(m for m in dict.fromkeys(messages) if m is not None)
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class PartialFailureError(Exception):
    """
    Some items of a multi-item request failed.

    Carries the same sub-error list shape as ApiError but is non-fatal: the
    items not listed in ``errors`` succeeded.
    """

    def __init__(self, error_body: dict[str, Any]):
        self.errors = error_body.get("errors")
        self.response = error_body.get("response")
        self.message = error_body.get("message") or DEFAULT_PARTIAL_FAILURE_MESSAGE
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class MissingProjectIdError(Exception):
    """A request referenced the project ID placeholder but none was resolved."""

    def __init__(self):
        self.message = (
            "Sorry, we cannot connect to Cloud Services without a project ID. "
            'You may specify one with an environment variable named "GOOGLE_CLOUD_PROJECT".'
        )
        super().__init__(self.message)


__all__ = [
    "ApiError",
    "PartialFailureError",
    "MissingProjectIdError",
    "DEFAULT_API_ERROR_MESSAGE",
    "DEFAULT_PARTIAL_FAILURE_MESSAGE",
]
