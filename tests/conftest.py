"""
pytest configuration for cloud_common tests.

Adds src directory to Python path for imports and provides shared fakes for
aiohttp sessions.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.auth.exceptions import DefaultCredentialsError

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

# Project ID variables from the developer's shell must not leak into tests
_PROJECT_ENV = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT", "GOOGLE_APPLICATION_CREDENTIALS")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove credential and project variables for every test."""
    for var in _PROJECT_ENV:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("FUNCTION_NAME", raising=False)


@pytest.fixture(autouse=True)
def no_application_default_credentials():
    """Keep gcloud files and the metadata server out of credential discovery."""
    with patch(
        "google.auth.default",
        side_effect=DefaultCredentialsError("No application default credentials"),
    ) as default:
        yield default


def make_mock_response(status=200, body=b"{}", reason="OK", headers=None, chunks=None):
    """
    Build a mock aiohttp response usable as an async context manager.

    ``chunks`` feeds ``response.content.iter_chunked`` for streaming tests.
    """
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.reason = reason
    mock_response.headers = headers or {"Content-Type": "application/json"}
    mock_response.url = "https://example.com/"
    mock_response.read = AsyncMock(return_value=body)

    async def iter_chunked(size):
        for chunk in chunks or []:
            yield chunk

    mock_response.content = MagicMock()
    mock_response.content.iter_chunked = iter_chunked
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)
    return mock_response


def make_mock_session(*responses):
    """Mock session whose ``request`` returns ``responses`` in order."""
    mock_session = AsyncMock()
    mock_session.closed = False
    if len(responses) == 1:
        mock_session.request = MagicMock(return_value=responses[0])
    else:
        mock_session.request = MagicMock(side_effect=list(responses))
    return mock_session


@pytest.fixture
def mock_response_factory():
    return make_mock_response


@pytest.fixture
def mock_session_factory():
    return make_mock_session
