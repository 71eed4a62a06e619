"""
Request decoration: project ID substitution and URI assembly.

Decoration turns a logical request into a dispatch-ready one. It never
mutates the caller's options; every function here returns new structures.
"""

import re
from typing import Any

from cloud_common.errors.exceptions import MissingProjectIdError
from cloud_common.types import PROJECT_ID_TOKEN, RequestOptions


# Pagination/stream control options that must never reach the wire
CONTROL_FIELDS = ("autoPaginate", "autoPaginateVal", "objectMode")


def replace_project_id_token(value: Any, project_id: str | None) -> Any:
    """
    Replace every project ID placeholder inside ``value``.

    Walks lists and dicts recursively and returns a new structure. If the
    placeholder occurs anywhere and ``project_id`` is empty or still the
    placeholder, raises before anything is returned, so callers never see
    a partially substituted value.

    Args:
        value: String, list, dict or scalar to process
        project_id: Resolved project ID

    Returns:
        Copy of ``value`` with all placeholders substituted

    Raises:
        MissingProjectIdError: If the placeholder is present but unresolved
    """
    if isinstance(value, list):
        return [replace_project_id_token(item, project_id) for item in value]

    if isinstance(value, dict):
        return {key: replace_project_id_token(item, project_id) for key, item in value.items()}

    if isinstance(value, str) and PROJECT_ID_TOKEN in value:
        if not project_id or project_id == PROJECT_ID_TOKEN:
            raise MissingProjectIdError()
        return value.replace(PROJECT_ID_TOKEN, project_id)

    return value


def _strip_control_fields(options: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in options.items() if key not in CONTROL_FIELDS}


def decorate_request(req_opts: RequestOptions, project_id: str | None) -> RequestOptions:
    """
    Produce a dispatch-ready copy of ``req_opts``.

    Control fields are removed from the top level and from the ``qs`` and
    ``json`` payloads, and the project ID placeholder is substituted in the
    query, the JSON body and the URI.

    Raises:
        MissingProjectIdError: If a placeholder cannot be substituted
    """
    decorated = _strip_control_fields(req_opts)

    if isinstance(decorated.get("qs"), dict):
        decorated["qs"] = replace_project_id_token(
            _strip_control_fields(decorated["qs"]), project_id
        )

    if isinstance(decorated.get("json"), dict):
        decorated["json"] = replace_project_id_token(
            _strip_control_fields(decorated["json"]), project_id
        )

    decorated["uri"] = replace_project_id_token(decorated.get("uri"), project_id)

    return decorated


_ABSOLUTE_URI = re.compile(r"^https?://")


def is_absolute_uri(uri: str) -> bool:
    """True for ``http://`` and ``https://`` URIs, not for paths like ``httpHeaders/x``."""
    return bool(_ABSOLUTE_URI.match(uri))


def build_request_uri(
    base_url: str,
    uri: str,
    project_id: str = PROJECT_ID_TOKEN,
    project_id_required: bool = True,
) -> str:
    """
    Assemble the full request URI for a service call.

    Joins the base URL, ``projects/{project_id}`` (when the service is
    project scoped) and the relative path. An absolute ``uri`` replaces the
    whole assembly. Colon method selectors stay attached to their parent
    segment: ``.../projects/:list`` becomes ``.../projects:list``.
    """
    components = [base_url]

    if project_id_required:
        components.extend(["projects", project_id])

    components.append(uri)

    if is_absolute_uri(uri):
        components = [uri]

    return "/".join(component.strip("/") for component in components).replace("/:", ":")


__all__ = [
    "CONTROL_FIELDS",
    "replace_project_id_token",
    "decorate_request",
    "build_request_uri",
    "is_absolute_uri",
]
