"""OAuth2 token providers: base interface, refresh-token and client-credentials flows."""

import asyncio
import logging
from abc import ABC, abstractmethod

import aiohttp

from cloud_common.auth.exceptions import (
    InvalidConfigurationError,
    TokenAcquisitionError,
)
from cloud_common.auth.models import OAuth2Config, OAuth2Token

logger = logging.getLogger(__name__)

TOKEN_REQUEST_TIMEOUT_SECONDS = 30


class BaseOAuth2Provider(ABC):
    """
    Abstract base class for OAuth2 token providers.

    Used by OAuth2TokenManager to manage tokens from multiple providers.
    """

    def __init__(self, provider_name: str):
        self.provider_name = provider_name

    @abstractmethod
    async def acquire_token(self) -> OAuth2Token:
        """Acquire a new OAuth2 token."""
        pass

    async def refresh_token(self, token: OAuth2Token) -> OAuth2Token:
        """Refresh an existing token. Defaults to acquiring a new one."""
        return await self.acquire_token()

    async def close(self) -> None:
        """Release provider resources."""
        pass


class _TokenEndpointProvider(BaseOAuth2Provider):
    """Shared aiohttp plumbing for providers posting to a token endpoint."""

    def __init__(self, config: OAuth2Config):
        super().__init__(config.provider_name)
        self.config = config
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _post_token_request(self, request_data: dict[str, str]) -> OAuth2Token:
        session = await self._ensure_session()

        if self.config.additional_params:
            request_data.update(self.config.additional_params)

        try:
            async with session.post(
                self.config.token_url,
                data=request_data,
                timeout=aiohttp.ClientTimeout(total=TOKEN_REQUEST_TIMEOUT_SECONDS),
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error(
                        f"Token acquisition failed for '{self.provider_name}': "
                        f"HTTP {response.status}",
                        extra={"http_status": response.status, "error_message": error_text[:200]},
                    )
                    raise TokenAcquisitionError(f"HTTP {response.status}: {error_text[:200]}")

                response_data = await response.json()

                logger.debug(
                    f"Acquired token for '{self.provider_name}'",
                    extra={"expires_in": response_data.get("expires_in")},
                )

                return OAuth2Token.from_response(response_data)

        except aiohttp.ClientError as e:
            logger.error(f"HTTP error during token acquisition for '{self.provider_name}': {e}")
            raise TokenAcquisitionError(f"HTTP error: {e}") from e

    async def close(self) -> None:
        """Close HTTP client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)


class RefreshTokenProvider(_TokenEndpointProvider):
    """
    Authorized-user credentials: exchanges a long-lived refresh token for
    short-lived access tokens.
    """

    def __init__(self, config: OAuth2Config):
        if not all([config.client_id, config.client_secret, config.refresh_token]):
            raise InvalidConfigurationError(
                "client_id, client_secret, and refresh_token are required"
            )
        super().__init__(config)

        logger.debug(
            f"Initialized refresh-token provider '{config.provider_name}'",
            extra={"token_url": config.token_url},
        )

    async def acquire_token(self) -> OAuth2Token:
        """
        Acquire an access token with the refresh_token grant.

        Raises:
            TokenAcquisitionError: If the token endpoint rejects the request
        """
        token = await self._post_token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": self.config.refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
            }
        )
        # The endpoint may rotate the refresh token
        if token.refresh_token:
            self.config.refresh_token = token.refresh_token
        return token


class ClientCredentialsProvider(_TokenEndpointProvider):
    """
    Client credentials flow for machine-to-machine authentication.

    Works with any OAuth2-compliant token endpoint.
    """

    def __init__(self, config: OAuth2Config):
        if not all([config.client_id, config.client_secret, config.token_url]):
            raise InvalidConfigurationError("client_id, client_secret, and token_url are required")
        super().__init__(config)

        logger.debug(
            f"Initialized client-credentials provider '{config.provider_name}'",
            extra={"token_url": config.token_url},
        )

    async def acquire_token(self) -> OAuth2Token:
        """
        Acquire token using client credentials flow.

        Raises:
            TokenAcquisitionError: If token acquisition fails
        """
        request_data = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }

        scope = self.config.get_scope_string()
        if scope:
            request_data["scope"] = scope

        return await self._post_token_request(request_data)

    async def refresh_token(self, token: OAuth2Token) -> OAuth2Token:
        """
        Refresh using the refresh_token grant when the server issued one.

        Falls back to a new client-credentials token when refreshing fails.
        """
        if not token.refresh_token:
            return await self.acquire_token()

        try:
            return await self._post_token_request(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": token.refresh_token,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                }
            )
        except TokenAcquisitionError as e:
            logger.warning(
                f"Token refresh failed for '{self.provider_name}', will acquire new token: {e}"
            )
            return await self.acquire_token()


__all__ = [
    "BaseOAuth2Provider",
    "RefreshTokenProvider",
    "ClientCredentialsProvider",
]
