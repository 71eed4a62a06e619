"""
Request preparation.

Components:
    - decorate_request: strip control fields, substitute the project ID
    - build_request_uri: base URL + project scope + relative path
    - Interceptor chains: global -> service -> per-call
    - Client identification headers
"""

from cloud_common.request.decorator import (
    CONTROL_FIELDS,
    build_request_uri,
    decorate_request,
    replace_project_id_token,
)
from cloud_common.request.headers import get_client_headers, get_user_agent_from_package
from cloud_common.request.interceptors import apply_interceptors, arrify, combine_interceptors

__all__ = [
    # Decoration
    "CONTROL_FIELDS",
    "decorate_request",
    "replace_project_id_token",
    "build_request_uri",
    # Interceptors
    "arrify",
    "combine_interceptors",
    "apply_interceptors",
    # Headers
    "get_user_agent_from_package",
    "get_client_headers",
]
