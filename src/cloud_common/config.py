"""Client configuration from YAML files, .env files and keyword overrides.

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.

Example config.yaml:

    client:
      project_id: ${GOOGLE_CLOUD_PROJECT}
      key_filename: ${GOOGLE_APPLICATION_CREDENTIALS:-}
      auto_retry: true
      max_retries: 3
      timeout_seconds: 60
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from cloud_common.errors.exceptions import MissingProjectIdError
from cloud_common.resilience.retry import RetryConfig
from cloud_common.transport.http_client import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Accepted spellings for configuration keys, mapped to ClientConfig fields
_KEY_ALIASES = {
    "projectId": "project_id",
    "keyFilename": "key_filename",
    "autoRetry": "auto_retry",
    "maxRetries": "max_retries",
    "timeout": "timeout_seconds",
    "apiEndpoint": "api_endpoint",
    "customEndpoint": "custom_endpoint",
    "interceptors_": "interceptors",
}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in data.items()}


@dataclass
class ClientConfig:
    """Options shared by every client built on this library.

    Attributes:
        project_id: Project to scope requests to; resolved from credentials when unset
        key_filename: Path to a credentials JSON file
        credentials: Credentials as an already-parsed dict
        token: Pre-issued bearer token, bypassing credential resolution
        email: Account email, kept for display and diagnostics
        scopes: OAuth2 scopes requested for client-credentials tokens
        auto_retry: Retry transient failures
        max_retries: Retries after the first attempt
        timeout_seconds: Total timeout per request
        api_endpoint: Override for the service's API host
        custom_endpoint: True when talking to an emulator or proxy; skips auth
        interceptors: Global interceptors applied before service interceptors
    """

    project_id: str | None = None
    key_filename: str | None = None
    credentials: dict[str, Any] | None = None
    token: str | None = None
    email: str | None = None
    scopes: list[str] = field(default_factory=list)
    auto_retry: bool = True
    max_retries: int = 3
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    api_endpoint: str | None = None
    custom_endpoint: bool = False
    interceptors: list[Any] = field(default_factory=list)

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_retries = int(self.max_retries)
        self.timeout_seconds = float(self.timeout_seconds)
        if isinstance(self.auto_retry, str):
            self.auto_retry = self.auto_retry.strip().lower() in ("1", "true", "yes")
        if isinstance(self.custom_endpoint, str):
            self.custom_endpoint = self.custom_endpoint.strip().lower() in ("1", "true", "yes")
        if isinstance(self.scopes, str):
            self.scopes = self.scopes.split()
        if self.scopes is None:
            self.scopes = []
        if self.interceptors is None:
            self.interceptors = []
        # ${VAR:-} expands to an empty string
        for name in ("project_id", "key_filename", "token", "email", "api_endpoint"):
            if getattr(self, name) == "":
                setattr(self, name, None)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClientConfig":
        """Build from a dict, accepting snake_case or camelCase keys and ignoring unknown ones."""
        known = {f.name for f in fields(cls)}
        normalized = _normalize_keys(data or {})
        unknown = set(normalized) - known
        if unknown:
            logger.debug(f"Ignoring unknown client config keys: {sorted(unknown)}")
        return cls(**{key: value for key, value in normalized.items() if key in known})

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(auto_retry=self.auto_retry, max_retries=self.max_retries)


def load_config(
    config_path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
    env_file: Path | str | None = None,
) -> ClientConfig:
    """Load client configuration.

    Sources, lowest to highest priority: the ``client:`` section of the YAML
    file (or the whole document when there is no such section), then
    ``overrides``. A ``.env`` file, when given, is loaded into the process
    environment before ``${VAR}`` expansion.

    Raises:
        FileNotFoundError: If ``config_path`` is given but does not exist
    """
    if env_file is not None:
        load_dotenv(env_file)

    client_config: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from file: {config_path}")
        yaml_data = _expand_env_vars(load_yaml(config_path))
        client_config = yaml_data.get("client", yaml_data)

    client_config = _normalize_keys(client_config)

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        client_config = _deep_merge(client_config, _normalize_keys(overrides))

    return ClientConfig.from_dict(client_config)


def extend_global_config(
    global_config: dict[str, Any] | None,
    overrides: dict[str, Any] | None,
) -> dict[str, Any]:
    """Merge a client's options over the global options.

    GCLOUD_PROJECT provides the default project ID. When both sides carry
    credentials (``credentials`` or ``key_filename``), the overriding ones
    replace the global ones entirely. Global interceptors are kept as the
    original list object, never copied or merged.
    """
    global_config = _normalize_keys(global_config or {})
    overrides = _normalize_keys(overrides or {})

    default_config: dict[str, Any] = {}
    if os.environ.get("GCLOUD_PROJECT"):
        default_config["project_id"] = os.environ["GCLOUD_PROJECT"]

    options = dict(global_config)

    has_global_connection = options.get("credentials") or options.get("key_filename")
    is_overriding_connection = overrides.get("credentials") or overrides.get("key_filename")
    if has_global_connection and is_overriding_connection:
        options.pop("credentials", None)
        options.pop("key_filename", None)

    extended = _deep_merge(_deep_merge(default_config, options), overrides)
    extended["interceptors"] = global_config.get("interceptors")
    return extended


def normalize_arguments(
    global_context: Any,
    local_config: dict[str, Any] | None,
    project_id_required: bool = False,
) -> dict[str, Any]:
    """Resolve a client's options against the global context's ``config``.

    Raises:
        MissingProjectIdError: If ``project_id_required`` and no project ID resolved
    """
    global_config = getattr(global_context, "config", None) if global_context else None
    config = extend_global_config(global_config, local_config)

    if project_id_required and not config.get("project_id"):
        raise MissingProjectIdError()

    return config


__all__ = [
    "ClientConfig",
    "load_config",
    "load_yaml",
    "extend_global_config",
    "normalize_arguments",
]
