"""Serve command: run the MCP server."""

from __future__ import annotations

from enum import Enum

import typer

from ...server import run_server
from ..context import CommandContext


class Transport(str, Enum):
    STDIO = "stdio"
    HTTP = "http"


def serve(
    ctx: typer.Context,
    transport: Transport = typer.Option(Transport.STDIO, "--transport", "-t", help="MCP transport"),
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host (http transport)"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port (http transport)"),
) -> None:
    """Run the MCP server until interrupted."""
    context: CommandContext = ctx.obj
    context.logger.info(f"Serving {len(context.registry.enabled_tools())} enabled tools")
    run_server(transport.value, host=host, port=port, registry=context.registry)


def register_command(main_app: typer.Typer) -> None:
    """Register the serve command with main app."""
    main_app.command(name="serve")(serve)
