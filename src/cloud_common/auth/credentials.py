"""
Credential providers used by the authenticated request factory.

DefaultCredentialProvider locates credentials the way cloud client libraries
conventionally do:

1. an explicit ``credentials`` dict
2. a ``key_filename`` JSON file
3. the file named by GOOGLE_APPLICATION_CREDENTIALS
4. google-auth's application default credentials (gcloud user credentials,
   attached service accounts on Google Cloud runtimes)

``authorized_user`` and ``client_credentials`` keys are exchanged through the
async OAuth2 providers in this package. Every other key type (service
accounts, workload identity federation, impersonation) is handled by
google-auth.

The project ID comes from explicit configuration, then GOOGLE_CLOUD_PROJECT /
GCLOUD_PROJECT, then the credentials' own ``project_id`` or
``quota_project_id``.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

import google.auth
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest

from cloud_common.auth.exceptions import (
    DEFAULT_CREDENTIALS_MISSING,
    CredentialsNotFoundError,
    InvalidConfigurationError,
    ProjectIdNotFoundError,
    TokenAcquisitionError,
)
from cloud_common.auth.manager import OAuth2TokenManager
from cloud_common.auth.models import GOOGLE_TOKEN_URL, OAuth2Config
from cloud_common.auth.providers import (
    BaseOAuth2Provider,
    ClientCredentialsProvider,
    RefreshTokenProvider,
)
from cloud_common.types import RequestOptions

logger = logging.getLogger(__name__)

CREDENTIALS_ENV_VAR = "GOOGLE_APPLICATION_CREDENTIALS"
PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT")
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

# Key types exchanged by the package's own OAuth2 providers
MANAGED_CREDENTIAL_TYPES = ("authorized_user", "client_credentials")

# Identity fields safe to hand back to callers
PUBLIC_CREDENTIAL_FIELDS = ("type", "client_email", "client_id", "project_id", "quota_project_id")


def project_id_from_env() -> str | None:
    """First project ID found in the conventional environment variables."""
    for var in PROJECT_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return value
    return None


def with_bearer_token(req_opts: RequestOptions, access_token: str) -> RequestOptions:
    """Copy of ``req_opts`` with an Authorization header added."""
    authorized = dict(req_opts)
    authorized["headers"] = {
        **(req_opts.get("headers") or {}),
        "Authorization": f"Bearer {access_token}",
    }
    return authorized


def _refresh_google_credentials(credentials: Any) -> None:
    credentials.refresh(GoogleAuthRequest())


class DefaultCredentialProvider:
    """
    Resolve credentials from configuration or the environment and authorize
    requests with OAuth2 access tokens.

    Tokens for ``authorized_user`` and ``client_credentials`` keys are cached
    by an OAuth2TokenManager; google-auth credentials cache their own token
    and are refreshed in a worker thread when it expires.
    """

    def __init__(
        self,
        project_id: str | None = None,
        key_filename: str | None = None,
        credentials: dict[str, Any] | None = None,
        scopes: list[str] | None = None,
        token_manager: OAuth2TokenManager | None = None,
    ):
        self.project_id = project_id
        self.key_filename = key_filename
        self.credentials = credentials
        self.scopes = scopes
        self._owns_manager = token_manager is None
        self._token_manager = token_manager or OAuth2TokenManager()
        self._loaded: dict[str, Any] | None = None
        self._google_credentials: Any = None
        self._google_project_id: str | None = None
        self._refresh_lock = asyncio.Lock()

    def _load_credentials(self) -> dict[str, Any] | None:
        """
        Explicit credential info, or None when the default chain applies.

        Raises:
            CredentialsNotFoundError: If a named credentials file does not exist
            InvalidConfigurationError: If the file is not JSON
        """
        if self._loaded is not None:
            return self._loaded

        if self.credentials:
            self._loaded = dict(self.credentials)
            return self._loaded

        path = self.key_filename or os.environ.get(CREDENTIALS_ENV_VAR)
        if not path:
            return None

        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise CredentialsNotFoundError(
                f"{DEFAULT_CREDENTIALS_MISSING}. The file {path} does not exist."
            ) from e
        except ValueError as e:
            raise InvalidConfigurationError(
                f"Credentials file {path} is not valid JSON: {e}"
            ) from e

        logger.debug("Loaded credentials file", extra={"file_path": str(path)})
        self._loaded = data
        return data

    def _provider_name(self, data: dict[str, Any]) -> str:
        return f"{data.get('type')}:{data.get('client_id')}"

    def _build_provider(self, data: dict[str, Any]) -> BaseOAuth2Provider:
        if data.get("type") == "authorized_user":
            return RefreshTokenProvider(
                OAuth2Config(
                    provider_name=self._provider_name(data),
                    client_id=data.get("client_id"),
                    client_secret=data.get("client_secret"),
                    token_url=data.get("token_uri") or GOOGLE_TOKEN_URL,
                    refresh_token=data.get("refresh_token"),
                )
            )

        return ClientCredentialsProvider(
            OAuth2Config(
                provider_name=self._provider_name(data),
                client_id=data.get("client_id"),
                client_secret=data.get("client_secret"),
                token_url=data.get("token_uri") or data.get("token_url"),
                scope=self.scopes or data.get("scope"),
            )
        )

    def _ensure_provider(self, data: dict[str, Any]) -> str:
        name = self._provider_name(data)
        if not self._token_manager.has_provider(name):
            self._token_manager.add_provider(self._build_provider(data))
        return name

    def _load_google_credentials(self, data: dict[str, Any] | None) -> tuple[Any, str | None]:
        if data is None:
            try:
                return google.auth.default(
                    scopes=self.scopes or None, default_scopes=[CLOUD_PLATFORM_SCOPE]
                )
            except google_auth_exceptions.DefaultCredentialsError as e:
                raise CredentialsNotFoundError() from e

        try:
            return google.auth.load_credentials_from_dict(
                data, scopes=self.scopes or None, default_scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except (google_auth_exceptions.DefaultCredentialsError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Unsupported credentials of type {data.get('type')!r}: {e}"
            ) from e

    async def _ensure_google_credentials(self, data: dict[str, Any] | None) -> Any:
        if self._google_credentials is None:
            credentials, project_id = await asyncio.to_thread(self._load_google_credentials, data)
            self._google_credentials = credentials
            self._google_project_id = project_id
            logger.debug(f"Loaded google-auth credentials: {type(credentials).__name__}")
        return self._google_credentials

    async def _google_access_token(self, data: dict[str, Any] | None) -> str:
        credentials = await self._ensure_google_credentials(data)

        async with self._refresh_lock:
            if not credentials.valid:
                try:
                    await asyncio.to_thread(_refresh_google_credentials, credentials)
                except google_auth_exceptions.GoogleAuthError as e:
                    raise TokenAcquisitionError(f"Failed to refresh credentials: {e}") from e

        return credentials.token

    async def get_access_token(self) -> str:
        """
        Raises:
            CredentialsNotFoundError: If no credentials could be located
            InvalidConfigurationError: If the credentials are of an unsupported type
            TokenAcquisitionError: If the token endpoint rejected the credentials
        """
        data = self._load_credentials()
        if data is not None and data.get("type") in MANAGED_CREDENTIAL_TYPES:
            return await self._token_manager.get_token(self._ensure_provider(data))
        return await self._google_access_token(data)

    async def authorize_request(self, req_opts: RequestOptions) -> RequestOptions:
        """Return a copy of ``req_opts`` carrying a bearer token."""
        authorized = with_bearer_token(req_opts, await self.get_access_token())

        if not self.project_id:
            try:
                await self.get_project_id()
            except ProjectIdNotFoundError:
                logger.debug("No project ID associated with credentials")

        return authorized

    async def _project_id_from_credentials(self) -> str | None:
        try:
            data = self._load_credentials()
        except CredentialsNotFoundError:
            return None

        if data is not None:
            return data.get("project_id") or data.get("quota_project_id")

        try:
            credentials = await self._ensure_google_credentials(None)
        except CredentialsNotFoundError:
            return None
        return self._google_project_id or getattr(credentials, "quota_project_id", None)

    async def get_project_id(self) -> str:
        """
        Resolve and cache the project ID.

        Raises:
            ProjectIdNotFoundError: If no source provides one
        """
        if self.project_id:
            return self.project_id

        project_id = project_id_from_env() or await self._project_id_from_credentials()
        if not project_id:
            raise ProjectIdNotFoundError()

        self.project_id = project_id
        logger.debug("Resolved project ID", extra={"project_id": project_id})
        return project_id

    async def get_credentials(self) -> dict[str, Any]:
        """Non-secret identity fields of the resolved credentials."""
        data = self._load_credentials()
        if data is not None:
            return {key: data[key] for key in PUBLIC_CREDENTIAL_FIELDS if key in data}

        credentials = await self._ensure_google_credentials(None)
        identity = {"type": "application_default"}
        email = getattr(credentials, "service_account_email", None)
        if email:
            identity["client_email"] = email
        return identity

    async def close(self) -> None:
        if self._owns_manager:
            await self._token_manager.close()


class StaticTokenProvider:
    """Authorize requests with a pre-issued bearer token."""

    def __init__(self, token: str, project_id: str | None = None):
        if not token:
            raise InvalidConfigurationError("token must be a non-empty string")
        self.token = token
        self.project_id = project_id

    async def authorize_request(self, req_opts: RequestOptions) -> RequestOptions:
        return with_bearer_token(req_opts, self.token)

    async def get_project_id(self) -> str:
        if not self.project_id:
            self.project_id = project_id_from_env()
        if not self.project_id:
            raise ProjectIdNotFoundError()
        return self.project_id

    async def get_credentials(self) -> dict[str, Any]:
        return {"type": "access_token"}

    async def close(self) -> None:
        pass


__all__ = [
    "CLOUD_PLATFORM_SCOPE",
    "CREDENTIALS_ENV_VAR",
    "PROJECT_ENV_VARS",
    "DefaultCredentialProvider",
    "StaticTokenProvider",
    "project_id_from_env",
    "with_bearer_token",
]
