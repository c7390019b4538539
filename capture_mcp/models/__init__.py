"""Data models shared across the gateway and tool shapers."""

from .api import ApiResponse, FailureKind


__all__ = ["ApiResponse", "FailureKind"]
