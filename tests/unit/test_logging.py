"""Unit tests for logging configuration."""

import json
import sys

import pytest
from loguru import logger

from capture_mcp.utils.logging_config import (
    LogContext,
    log_with_context,
    request_id_context,
    setup_logging,
    tool_context,
)


pytestmark = pytest.mark.fast


@pytest.fixture(autouse=True)
def _restore_test_logging():
    yield
    logger.remove()
    logger.add(sys.stderr, level="INFO")


class TestSetupLogging:
    """Test logging setup functionality."""

    def test_console_sink_is_stderr(self, capsys):
        setup_logging(level="INFO", format_type="text", include_timestamps=False)

        logger.info("hello from test")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "hello from test" in captured.err

    def test_json_format_serializes_records(self, tmp_path):
        log_file = tmp_path / "logs" / "capture.log"

        setup_logging(level="INFO", format_type="json", file_path=str(log_file))
        logger.info("structured")
        logger.remove()

        record = json.loads(log_file.read_text().splitlines()[0])
        assert record["record"]["message"] == "structured"

    def test_invalid_level_falls_back_to_info(self, capsys):
        setup_logging(level="NOT_A_LEVEL", include_timestamps=False)

        logger.debug("hidden")
        logger.info("visible")

        err = capsys.readouterr().err
        assert "falling back to 'INFO'" in err
        assert "hidden" not in err
        assert "visible" in err


class TestLogContext:
    """Test log context functionality."""

    def test_sets_and_resets_context_vars(self):
        with LogContext(tool="get_usaspending_awards", request_id="abcd1234"):
            assert tool_context.get() == "get_usaspending_awards"
            assert request_id_context.get() == "abcd1234"

        assert tool_context.get() is None
        assert request_id_context.get() is None

    def test_records_carry_tool_and_request_id(self):
        records = []
        logger.remove()
        logger.add(lambda message: records.append(message.record), level="DEBUG")

        with log_with_context(tool="search_sam_entities", request_id="r1") as log:
            log.debug("inside")
            logger.debug("module logger")
        logger.debug("outside")

        assert records[0]["extra"]["tool"] == "search_sam_entities"
        assert records[0]["extra"]["request_id"] == "r1"
        assert records[1]["extra"]["tool"] == "search_sam_entities"
        assert records[2]["extra"]["tool"] == "-"

    def test_empty_context_returns_logger(self):
        with LogContext() as log:
            assert log is logger
