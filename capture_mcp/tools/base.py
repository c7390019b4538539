"""Shared plumbing for the per-API tool shapers."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from ..config.schemas import CaptureConfig
from ..exceptions import APIError, ErrorCode, ValidationError
from ..gateway import ApiFamily, RequestGateway
from ..models.api import ApiResponse, FailureKind


def clamp_limit(value: Any, default: int, maximum: int) -> int:
    """Coerce a caller-supplied limit into ``1..maximum``.

    Examples:
        >>> clamp_limit(500, 10, 100)
        100
        >>> clamp_limit(None, 10, 100)
        10
    """
    if value is None or value == "":
        value = default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"limit must be an integer, got {value!r}",
            field="limit",
            status_code=ErrorCode.VALIDATION_FAILED,
        ) from exc
    return max(1, min(number, maximum))


def to_int(value: Any, field: str, default: int | None = None) -> int | None:
    """Coerce an optional integer argument, raising ValidationError on junk."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field} must be an integer, got {value!r}",
            field=field,
            status_code=ErrorCode.VALIDATION_FAILED,
        ) from exc


def to_amount(value: Any) -> float:
    """Coerce an upstream monetary value to float, treating missing/invalid as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)


def first_present(*values: Any) -> Any:
    """Return the first value that is not None/empty, mirroring upstream field fallbacks."""
    for value in values:
        if value not in (None, ""):
            return value
    return None


def path_segment(value: Any, field: str) -> str:
    """Percent-encode a caller value for use as exactly one URL path segment.

    Examples:
        >>> path_segment("075", "agency_code")
        '075'
        >>> path_segment("075/../search", "agency_code")
        '075%2F..%2Fsearch'
    """
    text = str(value).strip()
    if text in ("", ".", ".."):
        raise ValidationError(
            f"{field} is not a valid identifier: {value!r}",
            field=field,
            status_code=ErrorCode.VALIDATION_FAILED,
        )
    return quote(text, safe="")


def upstream_error(response: ApiResponse, family: ApiFamily, endpoint: str) -> APIError:
    """Wrap a failed gated call, keeping the gateway's message verbatim."""
    kind = response.failure_kind or FailureKind.REQUEST
    kwargs: dict[str, Any] = {}
    if response.is_network_error:
        kwargs = {"status_code": ErrorCode.API_NETWORK_FAILED, "retryable": True}
    return APIError(
        response.error or f"{family.label} request failed",
        api_name=family.value,
        endpoint=endpoint,
        http_status=response.status_code,
        details={"failure_kind": kind.value},
        **kwargs,
    )


class ToolShaper:
    """Base for shapers that own exactly one upstream API family."""

    family: ApiFamily
    component: str = "tools"
    key_env_hint: str | None = None

    def __init__(self, gateway: RequestGateway, config: CaptureConfig):
        self.gateway = gateway
        self.config = config
        self.defaults = config.tools
        self.upstream = gateway.upstreams[self.family]

    def require(self, args: dict[str, Any], field: str, message: str) -> Any:
        """Return ``args[field]`` or raise ValidationError naming the field."""
        value = args.get(field)
        if value in (None, "", []):
            raise ValidationError(message, field=field, component=self.component)
        return value

    def require_api_key(self, api_key: str | None) -> str:
        if not api_key:
            raise ValidationError(
                f"{self.family.label} API key is required. Please provide it as a parameter "
                f"or set {self.key_env_hint} environment variable",
                field="api_key",
                component=self.component,
                status_code=ErrorCode.MISSING_API_KEY,
            )
        return api_key

    def body(self, response: ApiResponse, endpoint: str, family: ApiFamily | None = None) -> dict[str, Any]:
        """Return the JSON object carried by a gated call.

        Raises APIError when the call failed or when the upstream answered with
        something other than a JSON object; the registry turns either into an
        ``{"error": ..., "details": ...}`` result.
        """
        family = family or self.family
        if not response.success:
            raise upstream_error(response, family, endpoint)
        if response.data is None:
            return {}
        if not isinstance(response.data, dict):
            raise APIError(
                f"Unexpected response body: expected a JSON object, got {type(response.data).__name__}",
                api_name=family.value,
                endpoint=endpoint,
                details={"failure_kind": FailureKind.REQUEST.value},
            )
        return response.data

    def limit(self, args: dict[str, Any], field: str = "limit") -> int:
        return clamp_limit(args.get(field), self.defaults.default_limit, self.upstream.max_page_size)

    def fiscal_year(self, args: dict[str, Any], *, default: bool = True) -> int | None:
        fallback = self.defaults.default_fiscal_year if default else None
        return to_int(args.get("fiscal_year"), "fiscal_year", fallback)
