"""Interceptor chains applied to outbound requests."""

import logging
from collections.abc import Iterable
from typing import Any

from cloud_common.types import Interceptor, RequestOptions

logger = logging.getLogger(__name__)


def arrify(value: Any) -> list[Any]:
    """Normalize None, a single item or an iterable into a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes, dict)):
        return list(value)
    return [value]


def combine_interceptors(
    global_interceptors: Iterable[Interceptor] | None,
    service_interceptors: Iterable[Interceptor] | None,
    call_interceptors: Iterable[Interceptor] | Interceptor | None,
) -> list[Interceptor]:
    """
    Concatenate the three interceptor scopes in application order.

    Global interceptors run first, then those of the service (or service
    object), then the ones attached to the individual call.
    """
    return arrify(global_interceptors) + arrify(service_interceptors) + arrify(call_interceptors)


def apply_interceptors(
    req_opts: RequestOptions, interceptors: Iterable[Interceptor]
) -> RequestOptions:
    """Fold ``req_opts`` through each interceptor's ``request`` hook in order."""
    for interceptor in interceptors:
        hook = getattr(interceptor, "request", None)
        if hook is None:
            logger.debug(
                "Skipping interceptor without request hook",
                extra={"interceptor": type(interceptor).__name__},
            )
            continue
        req_opts = hook(req_opts)
    return req_opts


__all__ = ["arrify", "combine_interceptors", "apply_interceptors"]
