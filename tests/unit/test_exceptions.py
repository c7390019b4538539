"""Unit tests for the exception hierarchy.

Tests cover:
- Base exception class functionality
- Exception hierarchy correctness
- Error code system
- Serialization and context preservation
"""

import pytest

from capture_mcp.exceptions import (
    APIError,
    CaptureMCPError,
    ConfigurationError,
    ErrorCode,
    ToolNotFoundError,
    ValidationError,
)
from tests.utils.exception_helpers import (
    assert_exception_details,
    assert_exception_serialization,
    assert_exception_structure,
)


pytestmark = pytest.mark.fast


class TestCaptureMCPError:
    """Tests for the base exception."""

    def test_str_includes_component_operation_and_code(self):
        exc = CaptureMCPError(
            "Something broke",
            component="tools.sam_gov",
            operation="search_entities",
            status_code=ErrorCode.VALIDATION_FAILED,
        )

        text = str(exc)
        assert "Something broke" in text
        assert "[component=tools.sam_gov]" in text
        assert "[operation=search_entities]" in text
        assert "[code=2001]" in text

    def test_defaults(self):
        exc = CaptureMCPError("plain")

        assert exc.details == {}
        assert exc.retryable is False
        assert exc.status_code is None
        assert exc.component == "capture_mcp.exceptions"

    def test_to_dict_serializes_cause_and_code(self):
        cause = RuntimeError("root")
        exc = CaptureMCPError("wrapped", status_code=ErrorCode.API_NETWORK_FAILED, cause=cause)

        data = assert_exception_serialization(exc)
        assert data["status_code"] == 3102
        assert data["cause"] == "root"


class TestValidationError:
    def test_single_field(self):
        exc = ValidationError("Agency code is required", field="agency_code", component="tools.usaspending")

        assert_exception_structure(
            exc,
            expected_message="Agency code is required",
            expected_component="tools.usaspending",
            expected_retryable=False,
            expected_status_code=ErrorCode.MISSING_REQUIRED_ARGUMENT,
        )
        assert_exception_details(exc, field="agency_code")

    def test_multiple_fields(self):
        exc = ValidationError("Both dates are required", fields=("posted_from", "posted_to"))

        assert_exception_details(exc, fields=["posted_from", "posted_to"])

    def test_status_code_override(self):
        exc = ValidationError("key missing", field="api_key", status_code=ErrorCode.MISSING_API_KEY)

        assert exc.status_code == ErrorCode.MISSING_API_KEY


class TestAPIError:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_transient_statuses_are_retryable(self, status):
        assert APIError("upstream", api_name="spending", http_status=status).retryable is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_not_retryable(self, status):
        assert APIError("upstream", api_name="sam", http_status=status).retryable is False

    def test_component_and_details(self):
        exc = APIError("bad", api_name="sam", endpoint="/opportunities/v2/search", http_status=404)

        assert_exception_structure(
            exc, expected_component="api.sam", expected_status_code=ErrorCode.API_REQUEST_FAILED
        )
        assert_exception_details(exc, endpoint="/opportunities/v2/search", http_status=404)

    def test_without_status_is_not_retryable(self):
        assert APIError("network down", api_name="spending").retryable is False


class TestOtherErrors:
    def test_configuration_error(self):
        exc = ConfigurationError("bad config", config_key="upstreams")

        assert_exception_structure(exc, expected_component="config", expected_retryable=False)
        assert_exception_details(exc, config_key="upstreams")

    def test_tool_not_found_message(self):
        exc = ToolNotFoundError("no_such_tool")

        assert exc.message == "Tool 'no_such_tool' not found"
        assert_exception_details(exc, tool="no_such_tool")
        assert exc.status_code == ErrorCode.TOOL_NOT_FOUND

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("v"),
            APIError("a"),
            ConfigurationError("c"),
            ToolNotFoundError("t"),
        ],
    )
    def test_hierarchy(self, exc):
        assert isinstance(exc, CaptureMCPError)
