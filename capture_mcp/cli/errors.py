"""Error formatting and display utilities."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ..exceptions import CaptureMCPError, ConfigurationError


class CLIError(Exception):
    """Base exception for CLI errors with exit code support."""

    def __init__(self, message: str, exit_code: int = 1, suggestions: list[str] | None = None) -> None:
        """Initialize CLI error.

        Args:
            message: Error message
            exit_code: Exit code to use (1 for errors, 2 for config errors)
            suggestions: Optional list of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.suggestions = suggestions or []


def _suggestions_for(error: Exception) -> list[str]:
    if isinstance(error, CLIError):
        return error.suggestions
    if isinstance(error, ConfigurationError):
        return [
            "Verify capture_mcp/config/base.yaml syntax",
            "Check CAPTURE_MCP__* environment variable overrides",
            "Run with --verbose for detailed error messages",
        ]
    if "api key" in str(error).lower():
        return ["Set SAM_GOV_API_KEY / TANGO_API_KEY or pass api_key in --args"]
    return []


def format_error(error: Exception, include_suggestions: bool = True) -> Panel:
    """Format an error for Rich display.

    Args:
        error: Exception to format
        include_suggestions: Include troubleshooting suggestions

    Returns:
        Rich Panel with formatted error
    """
    error_text = Text()
    error_text.append("✗ ", style="bold red")
    message = error.message if isinstance(error, (CLIError, CaptureMCPError)) else str(error)
    error_text.append(message, style="red")

    if type(error).__name__ != "Exception":
        error_text.append(f"\n\nType: {type(error).__name__}", style="dim")

    suggestions = _suggestions_for(error) if include_suggestions else []
    if suggestions:
        suggestion_text = Text("\n\nSuggested fixes:", style="bold yellow")
        for i, suggestion in enumerate(suggestions, 1):
            suggestion_text.append(f"\n  {i}. {suggestion}", style="yellow")
        error_text.append(suggestion_text)

    return Panel(error_text, title="Error", border_style="red")


def handle_error(
    error: Exception,
    console: Console | None = None,
    exit_code: int | None = None,
) -> None:
    """Display an error, then exit.

    Args:
        error: Exception to handle
        console: Console to print to (defaults to stderr)
        exit_code: Override exit code (uses error.exit_code if CLIError)
    """
    console = console or Console(stderr=True)
    console.print(format_error(error))

    if exit_code is not None:
        code = exit_code
    elif isinstance(error, CLIError):
        code = error.exit_code
    elif isinstance(error, ConfigurationError):
        code = 2
    else:
        code = 1

    raise typer.Exit(code=code)
