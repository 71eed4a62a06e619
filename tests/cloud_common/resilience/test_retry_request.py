"""
Tests for retry_request and RetryConfig.

Delays are configured to zero so the retry loop runs without sleeping.
"""

from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from cloud_common.resilience.retry import (
    DEFAULT_RETRY,
    NO_RETRY,
    RetryConfig,
    retry_request,
)
from cloud_common.transport.http_client import HttpResponse

FAST_RETRY = RetryConfig(max_retries=3, base_delay=0.0, max_delay=0.0)


def _is_server_error(response):
    return response.status_code >= 500


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_values(self):
        config = RetryConfig()
        assert config.auto_retry is True
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 32.0
        assert config.exponential_base == 2.0

    def test_type_conversion_from_strings(self):
        """Test that config handles string inputs (e.g., from YAML)."""
        config = RetryConfig(auto_retry="false", max_retries="5", base_delay="0.5")
        assert config.auto_retry is False
        assert config.max_retries == 5
        assert config.base_delay == 0.5

    def test_retries_disabled_when_auto_retry_off(self):
        assert RetryConfig(auto_retry=False, max_retries=7).retries == 0
        assert NO_RETRY.retries == 0

    def test_retries_follow_max_retries(self):
        assert RetryConfig(max_retries=5).retries == 5
        assert RetryConfig(max_retries=0).retries == 0
        assert DEFAULT_RETRY.retries == 3

    def test_delay_has_equal_jitter(self):
        config = RetryConfig(base_delay=2.0, max_delay=100.0)

        for _ in range(50):
            delay = config.get_delay(2)
            # base 8s: half fixed, half random
            assert 4.0 <= delay <= 8.0

    def test_delay_capped(self):
        config = RetryConfig(base_delay=10.0, max_delay=12.0)

        assert config.get_delay(10) == 12.0


class TestRetryRequest:
    """Tests for retry_request."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        send = AsyncMock(return_value=HttpResponse(status_code=200))

        response = await retry_request(send, FAST_RETRY, _is_server_error)

        assert response.status_code == 200
        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_retryable_response_then_success(self):
        send = AsyncMock(
            side_effect=[
                HttpResponse(status_code=503),
                HttpResponse(status_code=500),
                HttpResponse(status_code=200),
            ]
        )

        response = await retry_request(send, FAST_RETRY, _is_server_error)

        assert response.status_code == 200
        assert send.call_count == 3

    @pytest.mark.asyncio
    async def test_budget_exhausted_returns_last_response(self):
        """The last retryable response is handed back for normalization."""
        send = AsyncMock(return_value=HttpResponse(status_code=503))

        response = await retry_request(send, FAST_RETRY, _is_server_error)

        assert response.status_code == 503
        assert send.call_count == FAST_RETRY.max_retries + 1

    @pytest.mark.asyncio
    async def test_non_retryable_response_returned_immediately(self):
        send = AsyncMock(return_value=HttpResponse(status_code=404))

        response = await retry_request(send, FAST_RETRY, _is_server_error)

        assert response.status_code == 404
        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_transport_error_retried(self):
        send = AsyncMock(
            side_effect=[aiohttp.ClientConnectionError("reset"), HttpResponse(status_code=200)]
        )

        response = await retry_request(send, FAST_RETRY, _is_server_error)

        assert response.status_code == 200
        assert send.call_count == 2

    @pytest.mark.asyncio
    async def test_transport_error_raised_when_exhausted(self):
        send = AsyncMock(side_effect=TimeoutError("slow"))

        with pytest.raises(TimeoutError):
            await retry_request(send, FAST_RETRY, _is_server_error)

        assert send.call_count == 4

    @pytest.mark.asyncio
    async def test_other_exceptions_not_retried(self):
        send = AsyncMock(side_effect=ValueError("bug"))

        with pytest.raises(ValueError):
            await retry_request(send, FAST_RETRY, _is_server_error)

        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_auto_retry_off_single_attempt(self):
        send = AsyncMock(return_value=HttpResponse(status_code=503))

        response = await retry_request(send, NO_RETRY, _is_server_error)

        assert response.status_code == 503
        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_zero_max_retries_single_attempt(self):
        send = AsyncMock(side_effect=aiohttp.ClientConnectionError("reset"))

        with pytest.raises(aiohttp.ClientConnectionError):
            await retry_request(send, RetryConfig(max_retries=0), _is_server_error)

        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_without_predicate_any_response_accepted(self):
        send = AsyncMock(return_value=HttpResponse(status_code=500))

        response = await retry_request(send, FAST_RETRY)

        assert response.status_code == 500
        assert send.call_count == 1

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        config = RetryConfig(max_retries=2, base_delay=0.01, max_delay=0.01)
        send = AsyncMock(return_value=HttpResponse(status_code=503))
        get_delay = Mock(wraps=config.get_delay)
        config.get_delay = get_delay

        await retry_request(send, config, _is_server_error)

        assert [c.args[0] for c in get_delay.call_args_list] == [0, 1]
