"""
HTTP transport.

Components:
    - HttpResponse / send_request / create_session: aiohttp request plumbing
    - RequestStream: duplex stream for streaming requests
    - make_request / make_request_stream: retry-aware execution
    - AbortHandle: cancellation of in-flight requests
    - make_writable_stream: multipart uploads from a RequestStream
"""

from cloud_common.transport.executor import AbortHandle, make_request, make_request_stream
from cloud_common.transport.http_client import (
    DEFAULT_TIMEOUT_SECONDS,
    HttpResponse,
    build_request_kwargs,
    create_session,
    send_request,
)
from cloud_common.transport.stream import RequestStream
from cloud_common.transport.upload import make_writable_stream

__all__ = [
    # HTTP client
    "DEFAULT_TIMEOUT_SECONDS",
    "HttpResponse",
    "build_request_kwargs",
    "create_session",
    "send_request",
    # Streams
    "RequestStream",
    "make_writable_stream",
    # Execution
    "AbortHandle",
    "make_request",
    "make_request_stream",
]
