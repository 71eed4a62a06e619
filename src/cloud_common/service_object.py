"""
Base class for resources living under a Service (buckets, topics, ...).

A ServiceObject routes its requests through its parent with its own base
URL and ID prepended. Optional operations (create, delete, exists, get,
get_metadata, set_metadata) are enabled per resource type through the
``methods`` mapping; a value that is a dict may carry ``reqOpts`` merged into
the operation's request options:

    class Topic(ServiceObject):
        def __init__(self, pubsub, name):
            super().__init__(
                parent=pubsub,
                base_url="/topics",
                id=name,
                create_method=pubsub.create_topic,
                methods={"create": True, "delete": True, "getMetadata": True},
            )

Every optional operation is a coroutine that also accepts a trailing
callback.
"""

import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cloud_common.errors.exceptions import ApiError
from cloud_common.request.decorator import is_absolute_uri
from cloud_common.request.interceptors import arrify
from cloud_common.transport.stream import RequestStream
from cloud_common.types import Callback, RequestOptions
from cloud_common.utils.callbacks import callbackify

logger = logging.getLogger(__name__)

OPTIONAL_METHODS = ("create", "delete", "exists", "get", "get_metadata", "set_metadata")

_METHOD_ALIASES = {"getMetadata": "get_metadata", "setMetadata": "set_metadata"}

CreateMethod = Callable[..., Awaitable[tuple[Any, Any]]]


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


class ServiceObject:
    """
    Resource under a Service.

    Args:
        parent: Service or ServiceObject requests are routed through
        base_url: Path of this resource type relative to the parent
        id: Name or ID of this resource
        create_method: Coroutine ``create_method(id[, options])`` returning
            ``(instance, api_response)``
        methods: Optional operations to enable; all are enabled when omitted
    """

    def __init__(
        self,
        parent: Any,
        base_url: str | None = None,
        id: str | None = None,
        create_method: CreateMethod | None = None,
        methods: dict[str, Any] | None = None,
    ):
        self.metadata: Any = {}
        self.parent = parent
        self.base_url = base_url
        self.id = id
        self.create_method = create_method
        self.methods = {_METHOD_ALIASES.get(k, k): v for k, v in (methods or {}).items()}
        self.interceptors: list[Any] = []
        self._capabilities = self._build_capabilities(methods is not None)

    def _build_capabilities(self, restricted: bool) -> frozenset[str]:
        enabled = set()
        for name in OPTIONAL_METHODS:
            overridden = getattr(type(self), name) is not getattr(ServiceObject, name)
            if not restricted or overridden or self.methods.get(name):
                enabled.add(name)
        return frozenset(enabled)

    def supports(self, method_name: str) -> bool:
        """Whether ``method_name`` is available on this resource."""
        return _METHOD_ALIASES.get(method_name, method_name) in self._capabilities

    def _require(self, method_name: str) -> None:
        if method_name not in self._capabilities:
            raise AttributeError(f"{type(self).__name__} does not support {method_name}()")

    def _method_req_opts(self, method_name: str) -> dict[str, Any]:
        method_config = self.methods.get(method_name)
        if isinstance(method_config, dict):
            return copy.deepcopy(method_config.get("reqOpts") or {})
        return {}

    @callbackify
    async def create(self, options: dict[str, Any] | None = None) -> tuple["ServiceObject", Any]:
        """
        Create the resource through ``create_method``.

        Returns:
            ``(self, api_response)``; this instance takes the created metadata
        """
        self._require("create")
        if self.create_method is None:
            raise AttributeError(f"{type(self).__name__} has no create_method")

        args: list[Any] = [self.id]
        if options:
            args.append(options)

        instance, api_response = await self.create_method(*args)
        self.metadata = getattr(instance, "metadata", self.metadata)
        return self, api_response

    @callbackify
    async def delete(self) -> Any:
        """Delete the resource; returns the API response."""
        self._require("delete")
        req_opts = {"method": "DELETE", "uri": "", **self._method_req_opts("delete")}
        _, response = await self.request(req_opts)
        return response

    @callbackify
    async def exists(self) -> bool:
        """True if the resource exists; a 404 means it does not."""
        self._require("exists")
        try:
            await self.get()
        except ApiError as e:
            if e.code == 404:
                return False
            raise
        return True

    @callbackify
    async def get(self, config: dict[str, Any] | None = None) -> tuple["ServiceObject", Any]:
        """
        Load the resource's metadata.

        With ``{"autoCreate": True}`` a missing resource is created; if a
        concurrent creator wins (409), the resource is fetched again. The
        remaining config is passed to ``create``.

        Returns:
            ``(self, api_response)``
        """
        self._require("get")
        config = dict(config or {})
        auto_create = bool(config.pop("autoCreate", False)) and self.supports("create")

        try:
            _, response = await self.get_metadata()
        except ApiError as e:
            if not (e.code == 404 and auto_create):
                raise

            logger.debug(
                "Resource not found, creating it",
                extra={"resource": self.id},
            )
            try:
                return await self.create(config or None)
            except ApiError as create_error:
                if create_error.code == 409:
                    return await self.get(config)
                raise

        return self, response

    @callbackify
    async def get_metadata(self) -> tuple[Any, Any]:
        """Fetch and store the resource's metadata; returns ``(metadata, api_response)``."""
        self._require("get_metadata")
        req_opts = {"uri": "", **self._method_req_opts("get_metadata")}
        body, response = await self.request(req_opts)
        self.metadata = body
        return self.metadata, response

    @callbackify
    async def set_metadata(self, metadata: dict[str, Any]) -> tuple[Any, Any]:
        """PATCH the resource's metadata; returns ``(metadata, api_response)``."""
        self._require("set_metadata")
        req_opts = _merge(
            {"method": "PATCH", "uri": "", "json": metadata},
            self._method_req_opts("set_metadata"),
        )
        body, response = await self.request(req_opts)
        self.metadata = body
        return self.metadata, response

    def _prepare_request(self, req_opts: RequestOptions) -> RequestOptions:
        call_interceptors = req_opts.get("interceptors_")
        prepared = copy.deepcopy({k: v for k, v in req_opts.items() if k != "interceptors_"})

        uri = prepared.get("uri", "")
        components = [self.base_url or "", self.id or "", uri]
        if is_absolute_uri(uri):
            components = [uri]

        prepared["uri"] = "/".join(
            component.strip("/") for component in components if component.strip()
        )
        prepared["interceptors_"] = list(self.interceptors) + arrify(call_interceptors)
        return prepared

    def request(self, req_opts: RequestOptions, callback: Callback | None = None) -> Any:
        """
        Make a request through the parent, scoped to this resource.

        Without a callback returns a coroutine resolving to ``(body, response)``.
        """
        prepared = self._prepare_request(req_opts)
        if callback is not None:
            return self.parent.request(prepared, callback)
        return self.parent.request(prepared)

    def request_stream(self, req_opts: RequestOptions) -> RequestStream:
        return self.parent.request_stream(self._prepare_request(req_opts))


__all__ = ["ServiceObject", "OPTIONAL_METHODS"]
