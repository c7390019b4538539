"""Central exception hierarchy for the Capture MCP tool server.

All custom exceptions inherit from CaptureMCPError. Errors raised inside a
tool handler are converted into the ``{"error": ..., "details": ...}`` result
shape by the tool registry, so nothing below escapes the core boundary.

Exception Hierarchy:
    CaptureMCPError (base)
    ├── ValidationError
    ├── APIError
    ├── ConfigurationError
    └── ToolNotFoundError

Usage:
    from capture_mcp.exceptions import ValidationError

    if not agency_code:
        raise ValidationError(
            "Agency code is required",
            field="agency_code",
            component="tools.usaspending",
        )
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Error codes for programmatic handling.

    Categories:
        1xxx - Configuration errors
        2xxx - Argument validation errors
        3xxx - Upstream API errors
        5xxx - Tool dispatch errors
    """

    # Configuration errors (1xxx)
    CONFIG_LOAD_FAILED = 1001
    CONFIG_VALIDATION_FAILED = 1002

    # Validation errors (2xxx)
    VALIDATION_FAILED = 2001
    MISSING_REQUIRED_ARGUMENT = 2002
    MISSING_API_KEY = 2003

    # Upstream errors (3xxx)
    API_REQUEST_FAILED = 3101
    API_NETWORK_FAILED = 3102

    # Dispatch errors (5xxx)
    TOOL_NOT_FOUND = 5001


class CaptureMCPError(Exception):
    """Base exception for all Capture MCP errors.

    Attributes:
        message: Human-readable error description
        component: Component that raised the error (e.g., "tools.sam_gov")
        operation: Operation being performed (e.g., "search_entities")
        details: Additional context as dictionary
        retryable: Whether the operation can be retried
        status_code: Numeric error code from ErrorCode enum
        cause: Original exception if wrapping another error
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        status_code: ErrorCode | None = None,
        cause: Exception | None = None,
    ):
        self.message = message
        self.component = component or self.__class__.__module__
        self.operation = operation
        self.details = details or {}
        self.retryable = retryable
        self.status_code = status_code
        self.cause = cause

        parts = [message]
        if component:
            parts.append(f"[component={component}]")
        if operation:
            parts.append(f"[operation={operation}]")
        if status_code:
            parts.append(f"[code={status_code}]")

        super().__init__(" ".join(parts))

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with all exception attributes

        Example:
            {
                "error_type": "ValidationError",
                "message": "Agency code is required",
                "component": "tools.usaspending",
                "operation": "get_agency_awards",
                "details": {"field": "agency_code"},
                "retryable": false,
                "status_code": 2002,
                "cause": null
            }
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "operation": self.operation,
            "details": self.details,
            "retryable": self.retryable,
            "status_code": self.status_code.value if self.status_code else None,
            "cause": str(self.cause) if self.cause else None,
        }


class ValidationError(CaptureMCPError):
    """Tool arguments failed validation.

    Raised before any upstream request is built, so a validation failure never
    costs an upstream call. Not retryable: the caller must fix the arguments.

    Example:
        raise ValidationError(
            "Both posted_from and posted_to dates are required",
            fields=["posted_from", "posted_to"],
            component="tools.sam_gov",
        )
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        fields: list[str] | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if fields:
            details["fields"] = list(fields)

        super().__init__(
            message,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.MISSING_REQUIRED_ARGUMENT),
            retryable=False,
            **kwargs,
        )


class APIError(CaptureMCPError):
    """An upstream API call did not succeed.

    The gateway never raises this. Shapers raise it when a gated call failed
    or answered with something other than a JSON object, and joins use it to
    abort on the first failed stage. 408, 429 and 5xx statuses are marked
    retryable.

    Example:
        raise APIError(
            "USAspending error: API Error 503: ...",
            api_name="spending",
            endpoint="/search/spending_by_award/",
            http_status=503,
        )
    """

    def __init__(
        self,
        message: str,
        api_name: str | None = None,
        endpoint: str | None = None,
        http_status: int | None = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint
        if http_status:
            details["http_status"] = http_status

        if "retryable" not in kwargs and http_status:
            kwargs["retryable"] = http_status in [408, 429, 500, 502, 503, 504]

        component = kwargs.pop("component", f"api.{api_name}" if api_name else "api")

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.API_REQUEST_FAILED),
            **kwargs,
        )


class ConfigurationError(CaptureMCPError):
    """Configuration loading or validation failed.

    Example:
        raise ConfigurationError(
            "Base configuration file not found",
            config_key="upstreams",
            details={"file_path": "capture_mcp/config/base.yaml"},
        )
    """

    def __init__(self, message: str, config_key: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        component = kwargs.pop("component", "config")

        super().__init__(
            message,
            component=component,
            details=details,
            status_code=kwargs.pop("status_code", ErrorCode.CONFIG_VALIDATION_FAILED),
            retryable=False,
            **kwargs,
        )


class ToolNotFoundError(CaptureMCPError):
    """Requested tool is unknown or not enabled for the configured API keys."""

    def __init__(self, tool_name: str, **kwargs: Any):
        details = kwargs.pop("details", {})
        details["tool"] = tool_name

        super().__init__(
            f"Tool '{tool_name}' not found",
            component=kwargs.pop("component", "tools.registry"),
            details=details,
            status_code=ErrorCode.TOOL_NOT_FOUND,
            retryable=False,
            **kwargs,
        )


__all__ = [
    "APIError",
    "CaptureMCPError",
    "ConfigurationError",
    "ErrorCode",
    "ToolNotFoundError",
    "ValidationError",
]
