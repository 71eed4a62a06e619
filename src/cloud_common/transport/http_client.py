"""
Core HTTP client using aiohttp.

Translates request options into aiohttp calls and captures responses in a
transport-neutral HttpResponse. Sessions keep connections alive and accept
gzip encoded responses.
"""

from dataclasses import dataclass, field
from typing import Any

import aiohttp

from cloud_common.types import RequestOptions

DEFAULT_TIMEOUT_SECONDS = 60
STREAM_CHUNK_SIZE = 64 * 1024


@dataclass
class HttpResponse:
    """HTTP response status, headers and (for buffered requests) body."""

    status_code: int
    reason: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    url: str | None = None

    @property
    def text(self) -> str | None:
        """Body decoded as UTF-8, or None when no body was captured."""
        if self.body is None:
            return None
        return self.body.decode("utf-8", errors="replace")


def response_head(response: aiohttp.ClientResponse) -> HttpResponse:
    """Capture status line and headers of an aiohttp response without its body."""
    return HttpResponse(
        status_code=response.status,
        reason=response.reason,
        headers=dict(response.headers),
        url=str(response.url),
    )


def _encode_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_params(qs: dict[str, Any] | None) -> list[tuple[str, str]] | None:
    """
    Flatten query options into aiohttp params.

    Booleans become ``true``/``false``, lists repeat the key, and None
    values are dropped.
    """
    if not qs:
        return None

    params: list[tuple[str, str]] = []
    for key, value in qs.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            params.extend((key, _encode_param(item)) for item in value)
        else:
            params.append((key, _encode_param(value)))
    return params


def build_request_kwargs(req_opts: RequestOptions) -> dict[str, Any]:
    """
    Convert request options into keyword arguments for ``session.request``.

    Recognized options: ``method``, ``uri``, ``qs``, ``headers``, ``json``
    (dict or list payload), ``body`` (raw payload), ``timeout`` (seconds)
    and ``forever`` (False disables connection reuse).

    Without ``timeout`` the session timeout applies; ``timeout: None``
    disables the total timeout for this request.
    """
    headers = dict(req_opts.get("headers") or {})
    if req_opts.get("forever") is False:
        headers["Connection"] = "close"

    kwargs: dict[str, Any] = {
        "method": (req_opts.get("method") or "GET").upper(),
        "url": req_opts["uri"],
        "headers": headers,
    }

    if "timeout" in req_opts:
        kwargs["timeout"] = aiohttp.ClientTimeout(total=req_opts["timeout"])

    params = encode_params(req_opts.get("qs"))
    if params:
        kwargs["params"] = params

    payload = req_opts.get("json")
    if isinstance(payload, (dict, list)):
        kwargs["json"] = payload
    elif req_opts.get("body") is not None:
        kwargs["data"] = req_opts["body"]

    return kwargs


async def send_request(
    session: aiohttp.ClientSession, req_opts: RequestOptions
) -> HttpResponse:
    """
    Perform one HTTP request and buffer the response body.

    Transport errors (aiohttp.ClientError, TimeoutError) propagate unchanged.
    """
    kwargs = build_request_kwargs(req_opts)

    async with session.request(**kwargs) as response:
        head = response_head(response)
        head.body = await response.read()
        return head


def create_session(
    max_connections: int = 0,
    keepalive_timeout: float = 15.0,
    timeout_total: float = DEFAULT_TIMEOUT_SECONDS,
) -> aiohttp.ClientSession:
    """
    Create aiohttp ClientSession for API traffic.

    Args:
        max_connections: Connection pool size (0 means unlimited)
        keepalive_timeout: Seconds an idle connection is kept for reuse
        timeout_total: Default total timeout per request in seconds

    Returns:
        Configured aiohttp.ClientSession

    Note:
        Caller is responsible for session lifecycle management.
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        keepalive_timeout=keepalive_timeout,
        ttl_dns_cache=300,
        enable_cleanup_closed=True,
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_total),
        headers={"Accept-Encoding": "gzip, deflate"},
        auto_decompress=True,
    )


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "STREAM_CHUNK_SIZE",
    "HttpResponse",
    "response_head",
    "encode_params",
    "build_request_kwargs",
    "send_request",
    "create_session",
]
