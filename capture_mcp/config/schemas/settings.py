"""Root CaptureConfig composed from modular schema components."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .runtime import LoggingConfig, ServerMetadata, ToolDefaultsConfig
from .upstream import UpstreamsConfig


class CaptureConfig(BaseModel):
    """Root configuration model for the Capture MCP server."""

    server: ServerMetadata = Field(default_factory=ServerMetadata)
    upstreams: UpstreamsConfig = Field(
        default_factory=UpstreamsConfig, description="Upstream API families"
    )
    tools: ToolDefaultsConfig = Field(default_factory=ToolDefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="allow",
    )


__all__ = ["CaptureConfig"]
