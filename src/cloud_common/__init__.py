"""
Shared runtime for cloud API client libraries.

Provides the request pipeline (credentials, project ID substitution,
interceptors, retries, error normalization), auto-pagination, and the
Service / ServiceObject base classes individual clients build on.
"""

from cloud_common.config import ClientConfig, extend_global_config, load_config, normalize_arguments
from cloud_common.errors import (
    ApiError,
    MissingProjectIdError,
    PartialFailureError,
    handle_resp,
    parse_http_resp_body,
    parse_http_resp_message,
    should_retry_request,
)
from cloud_common.factory import AuthenticatedRequestFactory, make_authenticated_request_factory
from cloud_common.paginator import PaginatedStream, Paginator, paginator
from cloud_common.request import (
    build_request_uri,
    decorate_request,
    get_user_agent_from_package,
    replace_project_id_token,
)
from cloud_common.resilience import RetryConfig
from cloud_common.service import Service, ServiceConfig
from cloud_common.service_object import ServiceObject
from cloud_common.transport import AbortHandle, HttpResponse, RequestStream, make_writable_stream
from cloud_common.types import PROJECT_ID_TOKEN
from cloud_common.utils import callbackify, is_custom_type, promisify

__version__ = "0.1.0"

__all__ = [
    # Services
    "Service",
    "ServiceConfig",
    "ServiceObject",
    # Request pipeline
    "AuthenticatedRequestFactory",
    "make_authenticated_request_factory",
    "decorate_request",
    "replace_project_id_token",
    "build_request_uri",
    "get_user_agent_from_package",
    "PROJECT_ID_TOKEN",
    "RetryConfig",
    "AbortHandle",
    "HttpResponse",
    "RequestStream",
    "make_writable_stream",
    # Errors
    "ApiError",
    "PartialFailureError",
    "MissingProjectIdError",
    "handle_resp",
    "parse_http_resp_message",
    "parse_http_resp_body",
    "should_retry_request",
    # Pagination
    "Paginator",
    "PaginatedStream",
    "paginator",
    # Configuration
    "ClientConfig",
    "load_config",
    "extend_global_config",
    "normalize_arguments",
    # Utilities
    "callbackify",
    "promisify",
    "is_custom_type",
]
