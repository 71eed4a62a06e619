"""Authentication exceptions."""

# Substring the request factory treats as a recoverable credential failure
DEFAULT_CREDENTIALS_MISSING = "Could not load the default credentials"


class OAuth2Error(Exception):
    """Base exception for authentication operations."""

    pass


class TokenAcquisitionError(OAuth2Error):
    """Token could not be acquired from the token endpoint."""

    pass


class InvalidConfigurationError(OAuth2Error):
    """Credential configuration is invalid or unsupported."""

    pass


class CredentialsNotFoundError(OAuth2Error):
    """No credentials could be located in the environment."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or (
                f"{DEFAULT_CREDENTIALS_MISSING}. Set GOOGLE_APPLICATION_CREDENTIALS "
                "to the path of a credentials file, or pass credentials, "
                "key_filename or token explicitly."
            )
        )


class ProjectIdNotFoundError(OAuth2Error):
    """No project ID could be resolved for the current credentials."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "Unable to detect a Project Id in the current environment.")


__all__ = [
    "DEFAULT_CREDENTIALS_MISSING",
    "OAuth2Error",
    "TokenAcquisitionError",
    "InvalidConfigurationError",
    "CredentialsNotFoundError",
    "ProjectIdNotFoundError",
]
