"""Tests for logging setup and utilities."""

import json
import logging
import re
from unittest.mock import MagicMock

import pytest

from cloud_common.errors.exceptions import ApiError
from cloud_common.logging.context import clear_log_context, get_log_context
from cloud_common.logging.formatters import ConsoleFormatter, JSONFormatter
from cloud_common.logging.setup import generate_request_id, get_logger, setup_logging
from cloud_common.logging.utilities import log_exception, log_with_context


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if isinstance(handler.formatter, (ConsoleFormatter, JSONFormatter)):
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)
    clear_log_context()


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_only(self, restore_root_logger):
        logger = setup_logging(name="cloud_common.setup_test", service="storage")

        assert logger.name == "cloud_common.setup_test"
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, ConsoleFormatter)
        assert get_log_context()["service"] == "storage"
        assert logging.getLogger("aiohttp").level == logging.WARNING

    def test_json_log_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "client.log"

        logger = setup_logging(name="cloud_common.setup_test", log_file=log_file)
        logger.info("written to file", extra={"http_status": 200})
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert len(restore_root_logger.handlers) == 2
        assert isinstance(restore_root_logger.handlers[1].formatter, JSONFormatter)
        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(
            line["message"] == "written to file" and line["http_status"] == 200 for line in lines
        )


class TestHelpers:
    """Tests for logger helpers."""

    def test_get_logger(self):
        assert get_logger("cloud_common.x") is logging.getLogger("cloud_common.x")

    def test_generate_request_id_format(self):
        request_id = generate_request_id()

        assert re.fullmatch(r"r-\d{8}-\d{6}-[0-9a-f]{6}", request_id)
        assert generate_request_id() != request_id


class TestLogUtilities:
    """Tests for log_with_context and log_exception."""

    def test_log_with_context_filters_reserved_keys(self):
        logger = MagicMock()

        log_with_context(logger, logging.INFO, "msg", api_url="/x", name="reserved")

        logger.log.assert_called_once_with(
            logging.INFO, "msg", exc_info=None, extra={"api_url": "/x"}
        )

    def test_log_exception_api_error_details(self):
        logger = MagicMock()
        err = ApiError({"code": 429, "errors": [{"reason": "rateLimitExceeded", "message": "m"}]})

        log_exception(logger, err, "Request failed", api_url="/x")

        args, kwargs = logger.log.call_args
        assert args == (logging.ERROR, "Request failed")
        assert kwargs["exc_info"] is err
        assert kwargs["extra"]["error_code"] == 429
        assert kwargs["extra"]["api_errors"] == ["rateLimitExceeded"]
        assert kwargs["extra"]["error_type"] == "ApiError"
        assert kwargs["extra"]["api_url"] == "/x"

    def test_log_exception_truncates_and_skips_traceback(self):
        logger = MagicMock()

        log_exception(logger, ValueError("x" * 600), "failed", include_traceback=False)

        kwargs = logger.log.call_args.kwargs
        assert "exc_info" not in kwargs
        assert len(kwargs["extra"]["error_message"]) == 503
        assert "error_code" not in kwargs["extra"]
