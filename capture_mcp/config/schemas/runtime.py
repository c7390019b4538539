"""Runtime-supporting configuration schemas (logging, server metadata, tool defaults)."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "text"
    file_path: str | None = None
    max_file_size_mb: int = 100
    backup_count: int = 5
    include_tool: bool = True
    include_request_id: bool = True
    include_timestamps: bool = True

    @field_validator("format")
    @classmethod
    def _normalize_format(cls, value: str) -> str:
        if not isinstance(value, str):
            return value  # type: ignore[return-value]
        lowered = value.lower()
        if lowered in {"pretty", "text", "plain"}:
            return "text"
        if lowered in {"json", "structured"}:
            return "json"
        return value


class ServerMetadata(BaseModel):
    """Identity of the running server."""

    name: str = Field(default="capture-mcp", description="Server identifier")
    version: str = Field(default="1.0.0", description="Semantic version")
    environment: str = Field(default="development", description="Active environment name")
    user_agent: str = Field(
        default="Capture-MCP/1.0.0", description="User-Agent header sent upstream"
    )


class ToolDefaultsConfig(BaseModel):
    """Defaults and fixed windows applied by the tool shapers and joins."""

    default_fiscal_year: int = Field(default=2024, ge=2000)
    default_limit: int = Field(default=10, ge=1)
    opportunity_lookup_days: int = Field(
        default=30, ge=1, description="Trailing window scanned when locating an opportunity"
    )
    opportunity_lookup_limit: int = Field(default=100, ge=1)
    market_sample_size: int = Field(
        default=20, ge=1, description="Awards sampled for opportunity market context"
    )
    market_sample_shown: int = Field(default=10, ge=1)
    small_award_ceiling: float = Field(default=100_000, gt=0)
    medium_award_ceiling: float = Field(default=1_000_000, gt=0)
    strict_sanitization: bool = Field(
        default=False, description="Also strip angle brackets, quotes and ampersands"
    )

    @model_validator(mode="after")
    def _check_ceilings(self) -> ToolDefaultsConfig:
        if self.medium_award_ceiling <= self.small_award_ceiling:
            raise ValueError("medium_award_ceiling must exceed small_award_ceiling")
        return self


__all__ = ["LoggingConfig", "ServerMetadata", "ToolDefaultsConfig"]
