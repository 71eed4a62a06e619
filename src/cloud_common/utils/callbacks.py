"""Adapters between coroutine functions and trailing-callback calling conventions."""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


def invoke_callback(callback: Callable[..., Any], *args: Any) -> None:
    """
    Call a user callback from a background task.

    Nothing awaits that task, so an exception raised by the callback is
    logged here instead of surfacing as "Task exception was never retrieved".
    """
    try:
        callback(*args)
    except Exception:
        logger.exception(
            "Callback raised an exception",
            extra={"operation": getattr(callback, "__qualname__", type(callback).__name__)},
        )


def _deliver(callback: Callable[..., Any], result: Any) -> None:
    if isinstance(result, tuple):
        invoke_callback(callback, None, *result)
    else:
        invoke_callback(callback, None, result)


def callbackify(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Any]:
    """
    Let a coroutine function also accept a trailing callback.

    Called without a callback, the wrapper returns the coroutine unchanged.
    Called with one, the coroutine is scheduled on the running loop and
    ``callback(err)`` or ``callback(None, *result)`` runs when it finishes;
    the scheduled task is returned.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not args or not callable(args[-1]) or isinstance(args[-1], type):
            return fn(*args, **kwargs)

        callback = args[-1]
        args = args[:-1]

        async def invoke() -> None:
            try:
                result = await fn(*args, **kwargs)
            except Exception as e:
                invoke_callback(callback, e)
                return
            _deliver(callback, result)

        return asyncio.ensure_future(invoke())

    return wrapper


def promisify(fn: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
    """
    Turn a function taking a trailing ``callback(err, *values)`` into a
    coroutine function.

    The awaited result is the single value, or a tuple when the callback
    received several. A non-None ``err`` is raised.
    """

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def callback(err: BaseException | None = None, *values: Any) -> None:
            if future.done():
                logger.debug(f"Callback of {fn.__name__} invoked more than once")
                return
            if err is not None:
                future.set_exception(err)
            elif len(values) == 1:
                future.set_result(values[0])
            else:
                future.set_result(values)

        fn(*args, callback, **kwargs)
        return await future

    return wrapper


__all__ = ["callbackify", "invoke_callback", "promisify"]
