"""
Auto-pagination for ``next_query`` style listing methods.

A paged method is a coroutine taking a query and returning
``(results, next_query[, api_response])``. The paginator turns it into
either a complete list or a lazily fetched async stream of items:

    class Bucket(ServiceObject):
        async def get_files(self, query=None):
            body, response = await self.request({"uri": "/o", "qs": query})
            next_query = None
            if body.get("nextPageToken"):
                next_query = {**(query or {}), "pageToken": body["nextPageToken"]}
            return body.get("items", []), next_query, body

        get_files_stream = paginator.streamify("get_files")

    paginator.extend(Bucket, "get_files")

    files = await bucket.get_files()                  # every page
    async for file in bucket.get_files_stream({"maxResults": 50}):
        ...
"""

import asyncio
import copy
import functools
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from cloud_common.request.interceptors import arrify
from cloud_common.types import Callback, PagedMethod
from cloud_common.utils.callbacks import invoke_callback

logger = logging.getLogger(__name__)

# Query keys consumed by the paginator rather than the remote API
STREAM_OPTION_EXCLUDES = ("autoPaginate", "maxResults", "pageSize")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class ParsedArguments:
    """Normalized arguments of one paginated call."""

    query: Any = field(default_factory=dict)
    callback: Callback | None = None
    auto_paginate: bool = True
    max_api_calls: int = -1
    max_results: int = -1
    stream_options: dict[str, Any] = field(default_factory=dict)


def parse_arguments(args: Sequence[Any], awaited: bool = False) -> ParsedArguments:
    """
    Split positional arguments into a query, a callback and limits.

    The first argument is the query unless it is callable, in which case it
    is the callback. A callable last argument is the callback. When both
    are callable the last one wins and no query is used.

    ``maxResults`` (when a non-zero number) caps the results, else
    ``pageSize`` does. ``maxApiCalls`` (when a non-zero number) caps the
    page requests and is removed from the forwarded query.

    Auto-pagination is turned off when the caller will receive the result
    directly (a callback, or ``awaited``) and asked for a result cap or set
    ``autoPaginate`` to False.
    """
    first = args[0] if args else None
    last = args[-1] if args else None

    query = None
    callback = None

    if callable(first):
        callback = first
    else:
        query = first

    if callable(last):
        callback = last

    parsed = ParsedArguments(callback=callback)

    if isinstance(query, dict):
        query = copy.deepcopy(query)

        max_results = query.get("maxResults")
        if max_results and _is_number(max_results):
            parsed.max_results = max_results
        elif _is_number(query.get("pageSize")):
            parsed.max_results = query["pageSize"]

        max_api_calls = query.get("maxApiCalls")
        if max_api_calls and _is_number(max_api_calls):
            parsed.max_api_calls = max_api_calls
            del query["maxApiCalls"]

        if (callback is not None or awaited) and (
            parsed.max_results != -1 or query.get("autoPaginate") is False
        ):
            parsed.auto_paginate = False

    parsed.query = query if query is not None else {}

    if isinstance(parsed.query, dict):
        stream_options = copy.deepcopy(parsed.query)
        for key in STREAM_OPTION_EXCLUDES:
            stream_options.pop(key, None)
        parsed.stream_options = stream_options

    return parsed


class PaginatedStream:
    """
    Lazily fetched async stream of paginated items.

    Nothing is requested until the first read. Each page is requested only
    after every item of the previous page has been consumed. ``end()`` (or
    ``aclose()``) stops the stream early: buffered items are dropped and no
    further page is requested.
    """

    def __init__(self):
        self._buffer: deque = deque()
        self._pending: Callable[[], Awaitable[None]] | None = None
        self._eof = False
        self._error: BaseException | None = None
        self.ended = False
        self.destroyed = False

    def schedule(self, fetch: Callable[..., Awaitable[None]], *args: Any) -> None:
        """Set the request to issue when the buffer next runs dry."""
        self._pending = functools.partial(fetch, *args)

    def push(self, item: Any) -> bool:
        """Buffer one item. Returns False once the consumer has ended the stream."""
        if self.ended or self.destroyed:
            return False
        self._buffer.append(item)
        return True

    def push_eof(self) -> None:
        self._eof = True
        self._pending = None

    def end(self) -> None:
        """Stop consuming. Safe to call more than once."""
        if self.ended:
            return
        self.ended = True
        self._buffer.clear()
        self._pending = None

    async def aclose(self) -> None:
        self.end()

    def destroy(self, error: BaseException | None = None) -> None:
        """Terminate the stream; ``error`` is raised to the consumer on its next read."""
        if self.destroyed:
            return
        self.destroyed = True
        self._error = error
        self._buffer.clear()
        self.push_eof()

    def __aiter__(self) -> "PaginatedStream":
        return self

    async def __anext__(self) -> Any:
        while True:
            if self._error is not None:
                error, self._error = self._error, None
                raise error

            if self.ended:
                raise StopAsyncIteration

            if self._buffer:
                return self._buffer.popleft()

            if self._eof or self._pending is None:
                raise StopAsyncIteration

            fetch, self._pending = self._pending, None
            await fetch()


class ApiCallLimiter:
    """Issue page requests through a stream, refusing them past ``max_api_calls``."""

    def __init__(
        self,
        make_request_fn: Callable[..., Awaitable[None]],
        stream: PaginatedStream,
        max_api_calls: int = -1,
    ):
        self._make_request_fn = make_request_fn
        self.stream = stream
        self.max_api_calls = max_api_calls
        self.requests_made = 0

    def make_request(self, *args: Any) -> PaginatedStream:
        self.requests_made += 1

        if self.max_api_calls >= 0 and self.requests_made > self.max_api_calls:
            logger.debug(
                "API call limit reached, ending stream",
                extra={"api_calls": self.requests_made - 1, "max_api_calls": self.max_api_calls},
            )
            self.stream.push_eof()
            return self.stream

        self.stream.schedule(self._make_request_fn, *args)
        return self.stream


def create_limiter(
    make_request_fn: Callable[..., Awaitable[None]],
    max_api_calls: int = -1,
) -> ApiCallLimiter:
    """
    Pair a PaginatedStream with a request counter.

    Every request, the first included, counts against ``max_api_calls``
    (-1 means unlimited). A refused request ends the stream.
    """
    return ApiCallLimiter(make_request_fn, PaginatedStream(), max_api_calls)


def run_as_stream(parsed: ParsedArguments, method: PagedMethod) -> PaginatedStream:
    """
    Stream every item of a paged method, following ``next_query``.

    Stops at the end of the listing, when ``max_results`` items were
    emitted, when ``max_api_calls`` pages were requested, or when the
    consumer ends the stream. An error from any page terminates the stream.
    """
    results_to_send = parsed.max_results

    async def make_request(query: Any) -> None:
        try:
            response = await method(query)
        except Exception as e:
            logger.debug(f"Page request failed: {e}", extra={"error_message": str(e)[:200]})
            stream.destroy(e)
            return

        results = response[0] if response else None
        next_query = response[1] if response and len(response) > 1 else None
        on_result_set(list(results or []), next_query)

    def on_result_set(results: list[Any], next_query: Any) -> None:
        nonlocal results_to_send

        if results_to_send >= 0 and len(results) > results_to_send:
            results = results[:results_to_send]

        results_to_send -= len(results)

        logger.debug(
            "Received page",
            extra={
                "results_count": len(results),
                "api_calls": limiter.requests_made,
                "max_results": parsed.max_results,
            },
        )

        for item in results:
            if not stream.push(item):
                return

        if next_query and results_to_send != 0:
            limiter.make_request(next_query)
            return

        stream.push_eof()

    limiter = create_limiter(make_request, parsed.max_api_calls)
    stream = limiter.stream
    limiter.make_request(parsed.query)
    return stream


async def run(parsed: ParsedArguments, method: PagedMethod) -> Any:
    """
    Run a paginated call to completion.

    With auto-pagination every item is collected into one list; an error
    from any page discards the partial list. Without it the method is called
    once and its result tuple is relayed unmodified.

    When ``parsed.callback`` is set it receives ``(None, results)`` (or
    ``(None, *method_result)`` without auto-pagination), or ``(err,)`` on
    failure, and None is returned. Otherwise the result is returned and
    errors are raised.
    """
    callback = parsed.callback

    try:
        if parsed.auto_paginate:
            result = [item async for item in run_as_stream(parsed, method)]
        else:
            result = await method(parsed.query)
    except Exception as e:
        if callback is None:
            raise
        invoke_callback(callback, e)
        return None

    if callback is None:
        return result

    if parsed.auto_paginate:
        invoke_callback(callback, None, result)
    else:
        invoke_callback(callback, None, *result)
    return None


class Paginator:
    """Attach the pagination engine to methods of a class."""

    parse_arguments = staticmethod(parse_arguments)
    run = staticmethod(run)
    run_as_stream = staticmethod(run_as_stream)

    def extend(self, cls: type, method_names: str | Sequence[str]) -> None:
        """
        Replace each named method with an auto-paginating wrapper.

        The original is kept as ``<name>_``. The wrapper returns a coroutine,
        or a scheduled task when called with a trailing callback.
        """
        for method_name in arrify(method_names):
            original = getattr(cls, method_name)
            setattr(cls, f"{method_name}_", original)
            setattr(cls, method_name, self._wrap(original))

    def _wrap(self, original: Callable[..., Awaitable[tuple]]) -> Callable[..., Any]:
        @functools.wraps(original)
        def wrapper(obj: Any, *args: Any) -> Any:
            method = functools.partial(original, obj)
            if args and (callable(args[0]) or callable(args[-1])):
                return asyncio.ensure_future(run(parse_arguments(args), method))
            return run(parse_arguments(args, awaited=True), method)

        return wrapper

    def streamify(self, method_name: str) -> Callable[..., PaginatedStream]:
        """
        Build a method returning a PaginatedStream over ``method_name``.

        The unwrapped ``<name>_`` original is used when ``extend`` replaced it.
        """

        def stream_method(obj: Any, *args: Any) -> PaginatedStream:
            original = getattr(obj, f"{method_name}_", None) or getattr(obj, method_name)
            return run_as_stream(parse_arguments(args), original)

        stream_method.__name__ = f"{method_name}_stream"
        return stream_method


paginator = Paginator()


__all__ = [
    "ParsedArguments",
    "PaginatedStream",
    "ApiCallLimiter",
    "Paginator",
    "paginator",
    "parse_arguments",
    "create_limiter",
    "run",
    "run_as_stream",
]
