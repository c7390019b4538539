"""Schemas for upstream API families (SAM.gov, USAspending, Tango)."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator


class UpstreamConfig(BaseModel):
    """Connection and pacing settings for one upstream API family."""

    base_url: str = Field(description="Base URL all endpoints are appended to")
    min_interval_ms: int = Field(
        default=100, ge=0, description="Minimum spacing between released calls"
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    api_key_env_var: str | None = Field(
        default=None, description="Environment variable holding the API key, if one is needed"
    )
    max_page_size: int = Field(default=100, ge=1, description="Upper clamp for limit/size")

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def resolve_api_key(self) -> str | None:
        """Read this family's API key from the environment, if configured."""
        if not self.api_key_env_var:
            return None
        return os.getenv(self.api_key_env_var) or None


class UpstreamsConfig(BaseModel):
    """Per-family upstream settings."""

    sam: UpstreamConfig = Field(
        default_factory=lambda: UpstreamConfig(
            base_url="https://api.sam.gov",
            min_interval_ms=100,
            api_key_env_var="SAM_GOV_API_KEY",  # pragma: allowlist secret
            max_page_size=50,
        )
    )
    spending: UpstreamConfig = Field(
        default_factory=lambda: UpstreamConfig(
            base_url="https://api.usaspending.gov/api/v2",
            min_interval_ms=3600,
            max_page_size=100,
        )
    )
    aggregator: UpstreamConfig = Field(
        default_factory=lambda: UpstreamConfig(
            base_url="https://api.tango.makegov.com/v1",
            min_interval_ms=100,
            api_key_env_var="TANGO_API_KEY",  # pragma: allowlist secret
            max_page_size=100,
        )
    )


__all__ = ["UpstreamConfig", "UpstreamsConfig"]
