"""OAuth2 token manager with caching and refresh ahead of expiry."""

import asyncio
import logging
import threading
from typing import Any

from cloud_common.auth.exceptions import TokenAcquisitionError
from cloud_common.auth.models import OAuth2Token
from cloud_common.auth.providers import BaseOAuth2Provider

logger = logging.getLogger(__name__)

# Default token refresh buffer (5 minutes before expiry)
DEFAULT_REFRESH_BUFFER_SECONDS = 300


class OAuth2TokenManager:
    """
    Caches OAuth2 tokens per provider and refreshes them before they expire.

    Concurrent callers for the same provider share one refresh: a per-provider
    asyncio lock serializes token acquisition and the cache is re-checked once
    the lock is held.

    Usage:
        manager = OAuth2TokenManager()
        manager.add_provider(RefreshTokenProvider(config))

        token = await manager.get_token(config.provider_name)
        headers = {"Authorization": f"Bearer {token}"}
    """

    def __init__(self, refresh_buffer_seconds: int = DEFAULT_REFRESH_BUFFER_SECONDS):
        self._providers: dict[str, BaseOAuth2Provider] = {}
        self._tokens: dict[str, OAuth2Token] = {}
        self._lock = threading.Lock()
        self._refresh_locks: dict[str, asyncio.Lock] = {}
        self.refresh_buffer_seconds = refresh_buffer_seconds

    def add_provider(self, provider: BaseOAuth2Provider) -> None:
        """
        Register an OAuth2 provider.

        Raises:
            ValueError: If provider with same name already exists
        """
        with self._lock:
            if provider.provider_name in self._providers:
                raise ValueError(f"Provider '{provider.provider_name}' already exists")

            self._providers[provider.provider_name] = provider
            self._refresh_locks[provider.provider_name] = asyncio.Lock()

        logger.debug(
            f"Registered OAuth2 provider '{provider.provider_name}' "
            f"({provider.__class__.__name__})"
        )

    def has_provider(self, provider_name: str) -> bool:
        with self._lock:
            return provider_name in self._providers

    def get_provider(self, provider_name: str) -> BaseOAuth2Provider:
        """
        Get provider by name.

        Raises:
            KeyError: If provider not found
        """
        with self._lock:
            if provider_name not in self._providers:
                raise KeyError(
                    f"Provider '{provider_name}' not found. "
                    f"Available: {list(self._providers.keys())}"
                )
            return self._providers[provider_name]

    def _cached(self, provider_name: str) -> OAuth2Token | None:
        with self._lock:
            token = self._tokens.get(provider_name)
            if token and not token.is_expired(self.refresh_buffer_seconds):
                return token
            return None

    async def get_token(self, provider_name: str, force_refresh: bool = False) -> str:
        """
        Get access token for provider, refreshing it when close to expiry.

        Args:
            provider_name: Name of provider to get token for
            force_refresh: Force token refresh even if cached token is valid

        Returns:
            Access token string

        Raises:
            KeyError: If provider not found
            TokenAcquisitionError: If token acquisition fails
        """
        provider = self.get_provider(provider_name)

        if not force_refresh:
            cached = self._cached(provider_name)
            if cached:
                return cached.access_token

        async with self._refresh_locks[provider_name]:
            # Another coroutine may have refreshed while we waited
            if not force_refresh:
                cached = self._cached(provider_name)
                if cached:
                    return cached.access_token

            with self._lock:
                current_token = self._tokens.get(provider_name)

            try:
                if current_token:
                    logger.debug(f"Refreshing token for '{provider_name}'")
                    new_token = await provider.refresh_token(current_token)
                else:
                    logger.debug(f"Acquiring new token for '{provider_name}'")
                    new_token = await provider.acquire_token()
            except TokenAcquisitionError:
                raise
            except Exception as e:
                logger.error(f"Failed to get token for '{provider_name}': {e}")
                raise TokenAcquisitionError(
                    f"Failed to get token for '{provider_name}': {e}"
                ) from e

            with self._lock:
                self._tokens[provider_name] = new_token

            logger.debug(
                f"Token for '{provider_name}' valid until {new_token.expires_at.isoformat()}"
            )
            return new_token.access_token

    def set_token(self, provider_name: str, token: OAuth2Token) -> None:
        """Seed the cache with an externally issued token."""
        with self._lock:
            self._tokens[provider_name] = token

    def clear_token(self, provider_name: str | None = None) -> None:
        """
        Clear cached token(s).

        Args:
            provider_name: Provider to clear token for. If None, clears all tokens.
        """
        with self._lock:
            if provider_name:
                self._tokens.pop(provider_name, None)
            else:
                self._tokens.clear()

    def get_cached_token_info(self, provider_name: str) -> dict[str, Any] | None:
        """Describe the cached token for diagnostics, or None if nothing is cached."""
        with self._lock:
            token = self._tokens.get(provider_name)
            if not token:
                return None

            return {
                "provider_name": provider_name,
                "expires_at": token.expires_at.isoformat(),
                "remaining_seconds": token.remaining_lifetime.total_seconds(),
                "is_expired": token.is_expired(self.refresh_buffer_seconds),
                "token_type": token.token_type,
                "scope": token.scope,
            }

    async def close(self) -> None:
        """Close provider sessions and drop cached tokens."""
        with self._lock:
            providers = list(self._providers.values())
            self._tokens.clear()

        for provider in providers:
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"Error closing provider '{provider.provider_name}': {e}")


__all__ = ["OAuth2TokenManager", "DEFAULT_REFRESH_BUFFER_SECONDS"]
