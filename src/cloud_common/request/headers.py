"""Client identification headers stamped on every service request."""

import platform


def get_user_agent_from_package(name: str, version: str) -> str:
    """
    Build the User-Agent product token for a client package.

    Scoped package names are hyphenated for User-Agent compliance, and the
    legacy ``@google-cloud`` scope is reported as ``gcloud-node``.

    Example:
        >>> get_user_agent_from_package("@google-cloud/storage", "1.2.3")
        'gcloud-node-storage/1.2.3'
    """
    hyphenated = name.replace("@google-cloud", "gcloud-node").replace("/", "-")
    return f"{hyphenated}/{version}"


def get_client_headers(name: str, version: str) -> dict[str, str]:
    return {
        "User-Agent": get_user_agent_from_package(name, version),
        "x-goog-api-client": f"gl-python/{platform.python_version()} gccl/{version}",
    }


__all__ = ["get_user_agent_from_package", "get_client_headers"]
