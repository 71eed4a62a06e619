"""Duplex stream connecting a caller to one streaming HTTP request."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from typing import Any

logger = logging.getLogger(__name__)

_EOF = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class RequestStream:
    """
    Duplex stream for a single HTTP request.

    The readable side yields response body chunks::

        async for chunk in stream:
            ...

    The writable side (``write`` / ``end``) feeds the request body for
    uploads. Transport events are re-emitted to listeners registered with
    ``on``: ``response`` (HttpResponse head), ``complete`` (HttpResponse) and
    ``error`` (exception).

    The stream is returned to callers before the request starts, so
    listeners can be attached synchronously.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._readable: asyncio.Queue = asyncio.Queue()
        self._writable: asyncio.Queue = asyncio.Queue()
        self._read_ended = False
        self._write_ended = False
        self._abort_fn: Callable[[], Any] | None = None
        self.destroyed = False
        self.error: BaseException | None = None
        self.response: Any = None

    # -- events ---------------------------------------------------------

    def on(self, event: str, listener: Callable[..., Any]) -> "RequestStream":
        """Register ``listener`` for ``event``; returns the stream for chaining."""
        self._listeners[event].append(listener)
        return self

    def emit(self, event: str, *args: Any) -> None:
        if event == "response" and args:
            self.response = args[0]
        for listener in list(self._listeners[event]):
            listener(*args)

    # -- readable side --------------------------------------------------

    def push(self, chunk: Any) -> None:
        """Queue a chunk for readers. Ignored once the stream is destroyed."""
        if self.destroyed:
            return
        self._readable.put_nowait(chunk)

    def push_eof(self) -> None:
        if self.destroyed:
            return
        self._readable.put_nowait(_EOF)

    def __aiter__(self) -> "RequestStream":
        return self

    async def __anext__(self) -> Any:
        if self._read_ended:
            raise StopAsyncIteration

        item = await self._readable.get()

        if item is _EOF:
            self._read_ended = True
            raise StopAsyncIteration

        if isinstance(item, _Failure):
            self._read_ended = True
            raise item.error

        return item

    async def read(self) -> bytes:
        """Read the remaining body to completion."""
        return b"".join([chunk async for chunk in self])

    # -- writable side --------------------------------------------------

    def write(self, data: bytes) -> None:
        if self._write_ended:
            raise RuntimeError("write after end")
        self._writable.put_nowait(data)

    def end(self, data: bytes | None = None) -> None:
        """Finish the request body, optionally writing a last chunk."""
        if data:
            self.write(data)
        if not self._write_ended:
            self._write_ended = True
            self._writable.put_nowait(_EOF)

    async def iter_written(self) -> AsyncIterator[bytes]:
        """Yield chunks written by the caller until ``end`` is called."""
        while True:
            item = await self._writable.get()
            if item is _EOF:
                return
            yield item

    # -- lifecycle ------------------------------------------------------

    def set_abort(self, abort_fn: Callable[[], Any]) -> None:
        """Attach the abort hook of the attempt currently in flight."""
        self._abort_fn = abort_fn

    def abort(self) -> None:
        """Abort the in-flight attempt. Safe to call more than once."""
        abort_fn, self._abort_fn = self._abort_fn, None
        if abort_fn is not None:
            logger.debug("Aborting streaming request")
            abort_fn()

    def destroy(self, error: BaseException | None = None) -> None:
        """
        Tear the stream down, surfacing ``error`` to listeners and readers.

        Only the first call has any effect.
        """
        if self.destroyed:
            return
        self.destroyed = True
        self.error = error

        if error is not None:
            self._readable.put_nowait(_Failure(error))
            self.emit("error", error)
        else:
            self._readable.put_nowait(_EOF)


__all__ = ["RequestStream"]
