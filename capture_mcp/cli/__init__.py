"""Command-line interface for the Capture MCP server."""
