"""Main CLI application entry point for the Capture MCP server.

This module provides the Typer application instance and command registration.
"""

from __future__ import annotations

import typer
from rich.console import Console

from ..utils.logging_config import configure_logging_from_config
from .commands import call, serve, tools
from .errors import handle_error

# Initialize Typer app
app = typer.Typer(
    name="capture-mcp",
    help="Federal procurement data tools (SAM.gov, USAspending, Tango) for MCP clients",
    add_completion=False,
    no_args_is_help=True,
)

# Global console instance for Rich output
console = Console()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Capture MCP server CLI.

    Serve the MCP tools, list them, or call one directly.
    """
    try:
        configure_logging_from_config(level_override="DEBUG" if verbose else None)

        from .context import CommandContext

        ctx.obj = CommandContext.create()
    except Exception as e:
        handle_error(e, exit_code=2)  # Config errors use exit code 2

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


serve.register_command(app)
tools.register_command(app)
call.register_command(app)


if __name__ == "__main__":
    app()
