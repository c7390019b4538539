"""Result envelope returned by every gated upstream call."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class FailureKind(str, Enum):
    """Why an upstream call did not succeed."""

    HTTP_STATUS = "http_status"
    NETWORK = "network"
    REQUEST = "request"


class ApiResponse(BaseModel):
    """Outcome of one upstream request.

    ``success=False`` always carries ``data=None`` and a human-readable
    ``error``. Instances are immutable.
    """

    data: Any = None
    success: bool
    error: str | None = None
    failure_kind: FailureKind | None = None
    status_code: int | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_consistency(self) -> ApiResponse:
        if not self.success:
            if self.data is not None:
                raise ValueError("failed responses must not carry data")
            if not self.error:
                raise ValueError("failed responses must carry an error message")
        return self

    @classmethod
    def ok(cls, data: Any, status_code: int | None = None) -> ApiResponse:
        return cls(data=data, success=True, status_code=status_code)

    @classmethod
    def failure(
        cls,
        error: str,
        kind: FailureKind,
        status_code: int | None = None,
    ) -> ApiResponse:
        return cls(
            data=None,
            success=False,
            error=error,
            failure_kind=kind,
            status_code=status_code,
        )

    @property
    def is_network_error(self) -> bool:
        return self.failure_kind is FailureKind.NETWORK
