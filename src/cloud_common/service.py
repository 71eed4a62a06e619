"""
Base class for API service clients.

A Service owns the request factory for one API and turns relative request
options into complete ones: full URI, interceptors applied, client headers
stamped.
"""

import copy
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any

import aiohttp

from cloud_common.config import ClientConfig
from cloud_common.factory import AuthenticatedRequestFactory
from cloud_common.logging.context import LogContext
from cloud_common.request.decorator import build_request_uri
from cloud_common.request.headers import get_client_headers
from cloud_common.request.interceptors import apply_interceptors, arrify, combine_interceptors
from cloud_common.transport.http_client import HttpResponse
from cloud_common.transport.stream import RequestStream
from cloud_common.types import PROJECT_ID_TOKEN, Callback, CredentialProvider, RequestOptions

logger = logging.getLogger(__name__)


@dataclass
class ServiceConfig:
    """
    Static description of an API service.

    Attributes:
        base_url: Root URL requests are resolved against
        api_endpoint: API host, for clients that need it separately
        scopes: OAuth2 scopes the service requires
        package_name: Client package name, used in User-Agent
        package_version: Client package version, used in headers
        project_id_required: Insert ``projects/{projectId}`` into request URIs
    """

    base_url: str
    api_endpoint: str | None = None
    scopes: list[str] = field(default_factory=list)
    package_name: str = "cloud-common"
    package_version: str = "0.1.0"
    project_id_required: bool = True


class _DisableKeepAlive:
    """Turn off connection reuse; idle sockets do not survive function freezes."""

    def request(self, req_opts: RequestOptions) -> RequestOptions:
        req_opts["forever"] = False
        return req_opts


class Service:
    """
    API service client base.

    Args:
        config: Service description
        options: Client options (ClientConfig or dict of options)
        credential_provider: Provider to use instead of the one implied by options
        session: aiohttp session shared with other clients
    """

    def __init__(
        self,
        config: ServiceConfig,
        options: ClientConfig | dict[str, Any] | None = None,
        credential_provider: CredentialProvider | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        if not isinstance(options, ClientConfig):
            options = ClientConfig.from_dict(options)

        self.base_url = config.base_url
        self.api_endpoint = options.api_endpoint or config.api_endpoint
        self.package_name = config.package_name
        self.package_version = config.package_version
        self.project_id_required = config.project_id_required
        self.global_interceptors = arrify(options.interceptors)
        self.interceptors: list[Any] = []
        self.project_id = options.project_id or PROJECT_ID_TOKEN

        request_config = replace(
            options,
            project_id=self.project_id,
            scopes=options.scopes or list(config.scopes),
        )
        self.factory = AuthenticatedRequestFactory(request_config, credential_provider, session)
        self.auth_client = self.factory.auth_client

        if os.environ.get("FUNCTION_NAME"):
            logger.debug("Cloud Functions environment detected, disabling keep-alive")
            self.interceptors.append(_DisableKeepAlive())

    async def get_project_id(self) -> str:
        """Resolve the project ID from the credentials, caching it when unset."""
        project_id = await self.auth_client.get_project_id()
        if self.project_id == PROJECT_ID_TOKEN and project_id:
            self.project_id = project_id
        return self.project_id

    async def get_credentials(self) -> dict[str, Any]:
        return await self.factory.get_credentials()

    def _prepare_request(self, req_opts: RequestOptions) -> RequestOptions:
        call_interceptors = req_opts.get("interceptors_")
        prepared = copy.deepcopy({k: v for k, v in req_opts.items() if k != "interceptors_"})

        prepared["uri"] = build_request_uri(
            self.base_url,
            prepared.get("uri", ""),
            self.project_id,
            self.project_id_required,
        )

        interceptors = combine_interceptors(
            self.global_interceptors, self.interceptors, call_interceptors
        )
        prepared = apply_interceptors(prepared, interceptors)
        prepared.pop("interceptors_", None)

        prepared["headers"] = {
            **(prepared.get("headers") or {}),
            **get_client_headers(self.package_name, self.package_version),
        }
        return prepared

    def _log_context(self) -> LogContext:
        project_id = self.project_id if self.project_id != PROJECT_ID_TOKEN else None
        return LogContext(service=self.package_name, project_id=project_id)

    def request(
        self, req_opts: RequestOptions, callback: Callback | None = None
    ) -> Any:
        """
        Make an authenticated API request.

        Without a callback this returns a coroutine resolving to
        ``(body, response)``. With ``callback(err, body, response)`` the
        request is scheduled and an AbortHandle is returned.
        """
        prepared = self._prepare_request(req_opts)

        if callback is not None:
            with self._log_context():
                return self.factory.make_authenticated_request(prepared, callback)

        return self._request(prepared)

    async def _request(self, prepared: RequestOptions) -> tuple[Any, HttpResponse]:
        with self._log_context():
            return await self.factory.request(prepared)

    def request_stream(self, req_opts: RequestOptions) -> RequestStream:
        """Make an authenticated streaming request; the stream is returned immediately."""
        prepared = self._prepare_request(req_opts)
        with self._log_context():
            return self.factory.make_authenticated_request(prepared)

    async def close(self) -> None:
        await self.factory.close()

    async def __aenter__(self) -> "Service":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["Service", "ServiceConfig"]
