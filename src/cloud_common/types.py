"""
Core types and protocols used across modules.

This module provides the protocol definitions shared by the request
pipeline so that credential providers, interceptors and paged methods can be
supplied by individual service clients.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

# Placeholder substituted with the resolved project ID during decoration
PROJECT_ID_TOKEN = "{{projectId}}"

RequestOptions = dict[str, Any]


class Interceptor(Protocol):
    """
    Protocol for request interceptors.

    Interceptors are applied in order (global, service, per-call) and each
    receives the output of the previous one.
    """

    def request(self, req_opts: RequestOptions) -> RequestOptions:
        """
        Transform request options before dispatch.

        Args:
            req_opts: Request options produced by the previous interceptor

        Returns:
            Request options for the next interceptor
        """
        ...


class CredentialProvider(Protocol):
    """
    Protocol for credential providers.

    Implementations attach authorization headers to requests and resolve
    the project ID associated with the credentials.
    """

    project_id: str | None

    async def authorize_request(self, req_opts: RequestOptions) -> RequestOptions:
        """
        Return a copy of the request options carrying auth headers.

        Raises:
            CredentialsNotFoundError: If no credentials could be located
        """
        ...

    async def get_project_id(self) -> str:
        """Resolve the project ID for these credentials."""
        ...

    async def get_credentials(self) -> dict[str, Any]:
        """Return the non-secret identity fields of the credentials."""
        ...


# Paged methods resolve to (results, next_query[, api_response])
PagedMethod = Callable[[Any], Awaitable[tuple]]

# Callback receiving (err, *values)
Callback = Callable[..., None]


__all__ = [
    "PROJECT_ID_TOKEN",
    "RequestOptions",
    "Interceptor",
    "CredentialProvider",
    "PagedMethod",
    "Callback",
]
