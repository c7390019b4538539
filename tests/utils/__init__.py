"""Test utilities for Capture MCP.

This package provides:
- Recording upstream stub served through httpx.MockTransport (upstream_stub.py)
- Exception testing helpers (exception_helpers.py)
"""

from .exception_helpers import (
    assert_exception_details,
    assert_exception_serialization,
    assert_exception_structure,
)
from .upstream_stub import UpstreamStub


__all__ = [
    "UpstreamStub",
    "assert_exception_details",
    "assert_exception_serialization",
    "assert_exception_structure",
]
