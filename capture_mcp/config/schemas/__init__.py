"""Modular configuration schemas for Capture MCP."""

from .runtime import LoggingConfig, ServerMetadata, ToolDefaultsConfig
from .settings import CaptureConfig
from .upstream import UpstreamConfig, UpstreamsConfig


__all__ = [
    "CaptureConfig",
    "LoggingConfig",
    "ServerMetadata",
    "ToolDefaultsConfig",
    "UpstreamConfig",
    "UpstreamsConfig",
]
