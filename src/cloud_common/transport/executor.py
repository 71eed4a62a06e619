"""
Retry-aware request execution.

Buffered requests go through retry_request and are normalized with
handle_resp. Streaming requests are piped into a RequestStream: GET requests
are retried, other methods get exactly one attempt because their request
body cannot be replayed.
"""

import asyncio
import logging
from typing import Any

import aiohttp

from cloud_common.errors.normalizer import (
    handle_resp,
    parse_http_resp_message,
    should_retry_request,
)
from cloud_common.resilience.retry import (
    DEFAULT_RETRY,
    TRANSPORT_ERRORS,
    RetryConfig,
    _log_retry_attempt,
    _log_retry_exhausted,
    retry_request,
)
from cloud_common.transport.http_client import (
    STREAM_CHUNK_SIZE,
    HttpResponse,
    build_request_kwargs,
    response_head,
    send_request,
)
from cloud_common.transport.stream import RequestStream
from cloud_common.types import RequestOptions

logger = logging.getLogger(__name__)


class AbortHandle:
    """
    Cancellation handle for an in-flight request.

    ``abort`` cancels the active attempt at most once.
    """

    def __init__(self, task: asyncio.Future | None = None):
        self._active = task

    def set_active(self, task: asyncio.Future | None) -> None:
        self._active = task

    @property
    def active(self) -> asyncio.Future | None:
        return self._active

    def abort(self) -> None:
        active, self._active = self._active, None
        if active is not None and not active.done():
            active.cancel()


def _should_retry_response(response: HttpResponse) -> bool:
    err = parse_http_resp_message(response).err
    return should_retry_request(err)


def _operation_name(req_opts: RequestOptions) -> str:
    return f"{(req_opts.get('method') or 'GET').upper()} {req_opts.get('uri')}"


async def make_request(
    req_opts: RequestOptions,
    config: RetryConfig | None = None,
    *,
    session: aiohttp.ClientSession,
) -> tuple[Any, HttpResponse]:
    """
    Execute a buffered request with retries and normalize the outcome.

    Args:
        req_opts: Decorated request options
        config: Retry configuration (defaults to DEFAULT_RETRY)
        session: aiohttp session used for the exchange

    Returns:
        Tuple of (parsed body, HttpResponse)

    Raises:
        ApiError: For non-2xx responses or error bodies
        aiohttp.ClientError / TimeoutError: When every attempt failed in transport
    """
    operation = _operation_name(req_opts)

    logger.debug(
        "Sending request",
        extra={
            "api_method": (req_opts.get("method") or "GET").upper(),
            "api_url": req_opts.get("uri"),
        },
    )

    response = await retry_request(
        lambda: send_request(session, req_opts),
        config or DEFAULT_RETRY,
        _should_retry_response,
        operation=operation,
    )

    parsed = handle_resp(None, response, response.body)

    if parsed.err is not None:
        logger.debug(
            "Request failed",
            extra={
                "api_url": req_opts.get("uri"),
                "http_status": response.status_code,
                "error_message": str(parsed.err)[:200],
            },
        )
        raise parsed.err

    logger.debug(
        "Request completed",
        extra={"api_url": req_opts.get("uri"), "http_status": response.status_code},
    )
    return parsed.body, parsed.resp


async def _relay_response(
    response: aiohttp.ClientResponse, head: HttpResponse, stream: RequestStream
) -> None:
    stream.emit("response", head)

    async for chunk in response.content.iter_chunked(STREAM_CHUNK_SIZE):
        if stream.destroyed:
            return
        stream.push(chunk)

    stream.emit("complete", head)
    stream.push_eof()


async def _stream_with_retry(
    kwargs: dict[str, Any],
    config: RetryConfig,
    stream: RequestStream,
    session: aiohttp.ClientSession,
    operation: str,
) -> None:
    retries = config.retries
    attempt = 0
    relaying = False

    while True:
        try:
            async with session.request(**kwargs) as response:
                head = response_head(response)
                retryable = _should_retry_response(head)

                if not retryable or attempt >= retries:
                    if retryable and retries:
                        _log_retry_exhausted(operation, config, f"HTTP {head.status_code}")
                    # Chunks already pushed cannot be replayed
                    relaying = True
                    await _relay_response(response, head, stream)
                    return

                reason = f"HTTP {head.status_code}"
        except TRANSPORT_ERRORS as e:
            if relaying:
                raise
            if attempt >= retries:
                if retries:
                    _log_retry_exhausted(operation, config, str(e))
                raise
            reason = str(e)

        delay = config.get_delay(attempt)
        _log_retry_attempt(operation, attempt, config, delay, reason)
        await asyncio.sleep(delay)
        attempt += 1


async def _stream_once(
    kwargs: dict[str, Any],
    stream: RequestStream,
    session: aiohttp.ClientSession,
) -> None:
    kwargs.pop("json", None)
    kwargs["data"] = stream.iter_written()

    async with session.request(**kwargs) as response:
        await _relay_response(response, response_head(response), stream)


def make_request_stream(
    req_opts: RequestOptions,
    config: RetryConfig | None,
    stream: RequestStream,
    *,
    session: aiohttp.ClientSession,
) -> asyncio.Task:
    """
    Pipe a streaming request into ``stream``.

    GET requests are retried per ``config``; the response body becomes the
    readable side of the stream. Other methods send the stream's writable
    side as the request body in a single attempt.

    Transport errors are delivered through ``stream.destroy``. The stream's
    abort hook cancels the returned task.
    """
    kwargs = build_request_kwargs(req_opts)
    operation = _operation_name(req_opts)

    if kwargs["method"] == "GET":
        pipe = _stream_with_retry(kwargs, config or DEFAULT_RETRY, stream, session, operation)
    else:
        pipe = _stream_once(kwargs, stream, session)

    async def _run() -> None:
        try:
            await pipe
        except asyncio.CancelledError:
            logger.debug("Streaming request cancelled", extra={"operation": operation})
            raise
        except Exception as e:
            logger.debug(
                "Streaming request failed",
                extra={"operation": operation, "error_message": str(e)[:200]},
            )
            stream.destroy(e)

    task = asyncio.ensure_future(_run())
    stream.set_abort(task.cancel)
    return task


__all__ = [
    "AbortHandle",
    "make_request",
    "make_request_stream",
]
