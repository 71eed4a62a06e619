"""
Tests for cloud_common.errors.normalizer.

Tests cover:
- Status line normalization
- Body decoding and embedded API errors
- Precedence between transport, status and body errors
- Retry classification
"""

from unittest.mock import MagicMock

import pytest

from cloud_common.errors.exceptions import ApiError
from cloud_common.errors.normalizer import (
    handle_resp,
    parse_http_resp_body,
    parse_http_resp_message,
    should_retry_request,
)
from cloud_common.transport.http_client import HttpResponse


class TestParseHttpRespMessage:
    """Tests for parse_http_resp_message."""

    @pytest.mark.parametrize("status", [200, 201, 204, 299])
    def test_success_statuses(self, status):
        resp = HttpResponse(status_code=status, reason="OK")

        parsed = parse_http_resp_message(resp)

        assert parsed.err is None
        assert parsed.resp is resp

    @pytest.mark.parametrize("status", [100, 301, 400, 404, 500])
    def test_error_statuses(self, status):
        resp = HttpResponse(status_code=status, reason="Nope")

        parsed = parse_http_resp_message(resp)

        assert isinstance(parsed.err, ApiError)
        assert parsed.err.code == status
        assert parsed.err.message == "Nope"
        assert parsed.err.response is resp


class TestParseHttpRespBody:
    """Tests for parse_http_resp_body."""

    def test_json_string_decoded(self):
        parsed = parse_http_resp_body('{"name": "bucket"}')

        assert parsed.err is None
        assert parsed.body == {"name": "bucket"}

    def test_json_bytes_decoded(self):
        parsed = parse_http_resp_body(b'{"items": [1, 2]}')

        assert parsed.body == {"items": [1, 2]}

    def test_invalid_json_returns_error(self):
        parsed = parse_http_resp_body("<html>oops</html>")

        assert isinstance(parsed.err, ApiError)
        assert parsed.err.message == "Cannot parse JSON response"
        assert parsed.body == "<html>oops</html>"

    def test_already_decoded_body_passed_through(self):
        body = {"kind": "list"}

        parsed = parse_http_resp_body(body)

        assert parsed.body is body
        assert parsed.err is None

    def test_embedded_error(self):
        parsed = parse_http_resp_body({"error": {"code": 403, "message": "denied"}})

        assert isinstance(parsed.err, ApiError)
        assert parsed.err.code == 403
        assert parsed.err.message == "denied"


class TestHandleResp:
    """Tests for handle_resp."""

    def test_success(self):
        resp = HttpResponse(status_code=200, reason="OK")

        parsed = handle_resp(None, resp, b'{"ok": true}')

        assert parsed.err is None
        assert parsed.body == {"ok": True}
        assert parsed.resp is resp

    def test_body_error_wins_over_status(self):
        """The API's own error description replaces the bare status error."""
        body = (
            '{"error":{"code":400,"errors":[{"message":"bar"}],'
            '"message":"an error occurred"}}'
        )
        resp = HttpResponse(status_code=400, reason="Bad Request", body=body.encode())

        parsed = handle_resp(None, resp, body)

        assert isinstance(parsed.err, ApiError)
        assert parsed.err.code == 400
        assert parsed.err.message == "an error occurred - bar"

    def test_status_error_wins_over_transport_error(self):
        transport_error = ConnectionError("reset")
        resp = HttpResponse(status_code=503, reason="Service Unavailable")

        parsed = handle_resp(transport_error, resp, None)

        assert isinstance(parsed.err, ApiError)
        assert parsed.err.code == 503

    def test_transport_error_kept_without_response(self):
        transport_error = ConnectionError("reset")

        parsed = handle_resp(transport_error)

        assert parsed.err is transport_error
        assert parsed.resp is None
        assert parsed.body is None

    def test_empty_body_not_parsed(self):
        resp = HttpResponse(status_code=204, reason="No Content")

        parsed = handle_resp(None, resp, b"")

        assert parsed.err is None
        assert parsed.body is None

    def test_callback_invoked_with_outcome(self):
        resp = HttpResponse(status_code=200, reason="OK")
        callback = MagicMock()

        handle_resp(None, resp, '{"a": 1}', callback)

        callback.assert_called_once_with(None, {"a": 1}, resp)


class TestShouldRetryRequest:
    """Tests for should_retry_request."""

    @pytest.mark.parametrize("code", [429, 500, 502, 503])
    def test_retryable_codes(self, code):
        assert should_retry_request(ApiError({"code": code})) is True

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 409, 501, 504])
    def test_non_retryable_codes(self, code):
        assert should_retry_request(ApiError({"code": code})) is False

    @pytest.mark.parametrize("reason", ["rateLimitExceeded", "userRateLimitExceeded"])
    def test_rate_limit_reasons(self, reason):
        err = ApiError({"code": 403, "errors": [{"reason": reason, "message": "slow down"}]})

        assert should_retry_request(err) is True

    def test_other_reason_not_retried(self):
        err = ApiError({"code": 403, "errors": [{"reason": "forbidden", "message": "no"}]})

        assert should_retry_request(err) is False

    def test_no_error(self):
        assert should_retry_request(None) is False

    def test_plain_exception(self):
        assert should_retry_request(ValueError("x")) is False
