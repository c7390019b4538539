"""Capture MCP: federal procurement data tools for LLM clients."""

__version__ = "1.0.0"
