"""
Authenticated request factory.

Composes a credential provider with request decoration and the retry-aware
executor. Three calling conventions share one pipeline:

    factory = AuthenticatedRequestFactory(ClientConfig(project_id="my-project"))

    # awaitable
    body, response = await factory.request({"uri": "https://..."})

    # callback, returns an AbortHandle
    handle = factory(req_opts, lambda err, body, resp: ...)

    # stream, returned immediately
    stream = factory(req_opts)
    async for chunk in stream:
        ...
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from cloud_common.auth.credentials import DefaultCredentialProvider, StaticTokenProvider
from cloud_common.auth.exceptions import DEFAULT_CREDENTIALS_MISSING, OAuth2Error
from cloud_common.config import ClientConfig
from cloud_common.errors.exceptions import MissingProjectIdError
from cloud_common.request.decorator import decorate_request
from cloud_common.transport.executor import AbortHandle, make_request, make_request_stream
from cloud_common.transport.http_client import HttpResponse, create_session
from cloud_common.transport.stream import RequestStream
from cloud_common.types import PROJECT_ID_TOKEN, Callback, CredentialProvider, RequestOptions
from cloud_common.utils.callbacks import invoke_callback

logger = logging.getLogger(__name__)

OnAuthenticated = Callable[[Exception | None, RequestOptions | None], None]


def build_credential_provider(config: ClientConfig) -> CredentialProvider:
    """Pick the credential provider implied by ``config``."""
    project_id = config.project_id if config.project_id != PROJECT_ID_TOKEN else None

    if config.token:
        return StaticTokenProvider(config.token, project_id=project_id)

    return DefaultCredentialProvider(
        project_id=project_id,
        key_filename=config.key_filename,
        credentials=config.credentials,
        scopes=config.scopes,
    )


def _is_credentials_fallback(err: BaseException) -> bool:
    return DEFAULT_CREDENTIALS_MISSING in str(err)


class AuthenticatedRequestFactory:
    """
    Authenticate, decorate and dispatch API requests.

    Args:
        config: Client configuration (ClientConfig or dict of options)
        credential_provider: Provider to use instead of the one implied by config
        session: aiohttp session to use; one is created lazily when omitted
    """

    def __init__(
        self,
        config: ClientConfig | dict[str, Any] | None = None,
        credential_provider: CredentialProvider | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        if not isinstance(config, ClientConfig):
            config = ClientConfig.from_dict(config)

        self.config = config
        self.auth_client = credential_provider or build_credential_provider(config)
        self.retry_config = config.retry_config
        self._session = session
        self._owns_session = session is None

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = create_session(timeout_total=self.config.timeout_seconds)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session (when owned) and the credential provider."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

        close = getattr(self.auth_client, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "AuthenticatedRequestFactory":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_credentials(self) -> dict[str, Any]:
        return await self.auth_client.get_credentials()

    def _known_project_id(self) -> str | None:
        project_id = self.config.project_id
        if project_id and project_id != PROJECT_ID_TOKEN:
            return project_id
        return getattr(self.auth_client, "project_id", None) or None

    async def _resolve_project_id(self) -> str | None:
        project_id = self._known_project_id()
        if project_id:
            return project_id

        try:
            return await self.auth_client.get_project_id()
        except OAuth2Error as e:
            logger.debug(f"Project ID not resolved from credentials: {e}")
            return None

    async def authenticate(self, req_opts: RequestOptions) -> RequestOptions:
        """
        Authorize and decorate request options.

        With ``custom_endpoint`` the credential provider is never called; the
        project ID comes from the config or the provider's cached value.

        A provider failure caused by missing default credentials is not
        fatal: the request continues unauthenticated. It is re-raised only if
        decoration then fails for lack of a project ID.

        Raises:
            MissingProjectIdError: If the request needs a project ID and none resolved
            Exception: Any other credential provider error, unchanged
        """
        if self.config.custom_endpoint:
            logger.debug("Custom endpoint configured, skipping credentials")
            return decorate_request(req_opts, self._known_project_id())

        fallback_error: Exception | None = None

        try:
            authenticated = await self.auth_client.authorize_request(req_opts)
        except Exception as e:
            if not _is_credentials_fallback(e):
                raise
            logger.info(
                "Default credentials not found, continuing without authorization",
                extra={"api_url": req_opts.get("uri")},
            )
            fallback_error = e
            authenticated = req_opts

        project_id = await self._resolve_project_id()

        try:
            return decorate_request(authenticated, project_id)
        except MissingProjectIdError:
            if fallback_error is not None:
                raise fallback_error
            raise

    async def request(self, req_opts: RequestOptions) -> tuple[Any, HttpResponse]:
        """
        Authenticate and execute a buffered request.

        Returns:
            Tuple of (parsed body, HttpResponse)

        Raises:
            ApiError: For non-2xx responses or error bodies
        """
        authenticated = await self.authenticate(req_opts)
        session = await self.get_session()
        return await make_request(authenticated, self.retry_config, session=session)

    def make_authenticated_request(
        self,
        req_opts: RequestOptions,
        callback: Callback | None = None,
        *,
        on_authenticated: OnAuthenticated | None = None,
    ) -> RequestStream | AbortHandle:
        """
        Start an authenticated request on the running event loop.

        Args:
            req_opts: Request options
            callback: ``callback(err, body, response)`` for a buffered request
            on_authenticated: ``on_authenticated(err, req_opts)`` receives the
                decorated options instead of dispatching them

        Returns:
            A RequestStream when neither callback is given, else an AbortHandle
        """
        stream = RequestStream() if callback is None and on_authenticated is None else None

        def deliver_error(err: Exception) -> None:
            if stream is not None:
                stream.destroy(err)
            elif on_authenticated is not None:
                invoke_callback(on_authenticated, err, None)
            else:
                invoke_callback(callback, err, None, getattr(err, "response", None))

        async def dispatch() -> None:
            try:
                authenticated = await self.authenticate(req_opts)
            except Exception as e:
                deliver_error(e)
                return

            if on_authenticated is not None:
                invoke_callback(on_authenticated, None, authenticated)
                return

            session = await self.get_session()

            if stream is not None:
                make_request_stream(authenticated, self.retry_config, stream, session=session)
                return

            try:
                body, response = await make_request(
                    authenticated, self.retry_config, session=session
                )
            except Exception as e:
                deliver_error(e)
                return

            invoke_callback(callback, None, body, response)

        task = asyncio.ensure_future(dispatch())

        if stream is not None:
            # Replaced by the transport's own hook once the request starts
            stream.set_abort(task.cancel)
            return stream

        return AbortHandle(task)

    __call__ = make_authenticated_request


def make_authenticated_request_factory(
    config: ClientConfig | dict[str, Any] | None = None,
    credential_provider: CredentialProvider | None = None,
    session: aiohttp.ClientSession | None = None,
) -> AuthenticatedRequestFactory:
    """Create a request factory; the result is callable like ``make_authenticated_request``."""
    return AuthenticatedRequestFactory(config, credential_provider, session)


__all__ = [
    "AuthenticatedRequestFactory",
    "build_credential_provider",
    "make_authenticated_request_factory",
]
