"""
Authentication for API requests.

Credential providers attach bearer tokens to request options and resolve the
project ID. Tokens are cached by OAuth2TokenManager and refreshed before
expiry.

Basic Usage:
    from cloud_common.auth import DefaultCredentialProvider

    provider = DefaultCredentialProvider(key_filename="credentials.json")
    req_opts = await provider.authorize_request({"uri": "https://..."})
    project_id = await provider.get_project_id()

Pre-issued token:
    provider = StaticTokenProvider(token=os.getenv("ACCESS_TOKEN"))
"""

from cloud_common.auth.credentials import (
    CREDENTIALS_ENV_VAR,
    PROJECT_ENV_VARS,
    DefaultCredentialProvider,
    StaticTokenProvider,
    project_id_from_env,
)
from cloud_common.auth.exceptions import (
    DEFAULT_CREDENTIALS_MISSING,
    CredentialsNotFoundError,
    InvalidConfigurationError,
    OAuth2Error,
    ProjectIdNotFoundError,
    TokenAcquisitionError,
)
from cloud_common.auth.manager import DEFAULT_REFRESH_BUFFER_SECONDS, OAuth2TokenManager
from cloud_common.auth.models import GOOGLE_TOKEN_URL, OAuth2Config, OAuth2Token
from cloud_common.auth.providers import (
    BaseOAuth2Provider,
    ClientCredentialsProvider,
    RefreshTokenProvider,
)

__all__ = [
    # Credential providers
    "DefaultCredentialProvider",
    "StaticTokenProvider",
    "project_id_from_env",
    "CREDENTIALS_ENV_VAR",
    "PROJECT_ENV_VARS",
    # Token management
    "OAuth2TokenManager",
    "DEFAULT_REFRESH_BUFFER_SECONDS",
    "BaseOAuth2Provider",
    "RefreshTokenProvider",
    "ClientCredentialsProvider",
    # Models
    "OAuth2Token",
    "OAuth2Config",
    "GOOGLE_TOKEN_URL",
    # Exceptions
    "DEFAULT_CREDENTIALS_MISSING",
    "OAuth2Error",
    "TokenAcquisitionError",
    "InvalidConfigurationError",
    "CredentialsNotFoundError",
    "ProjectIdNotFoundError",
]
