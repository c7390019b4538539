"""Tools command: list every tool and whether it is enabled."""

from __future__ import annotations

import typer
from rich.table import Table
from rich.text import Text

from ...tools.registry import GROUP_KEY_FAMILY, TOOL_GROUPS, ToolName
from ..context import CommandContext


def tools(
    ctx: typer.Context,
    enabled_only: bool = typer.Option(False, "--enabled-only", help="Hide tools missing an API key"),
) -> None:
    """Display the available tools, their groups and required keys."""
    context: CommandContext = ctx.obj
    enabled = set(context.registry.enabled_tools())

    table = Table(title="Capture MCP Tools", show_header=True, header_style="bold magenta")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Group", style="blue")
    table.add_column("Requires Key", style="dim")
    table.add_column("Enabled", justify="center")

    for tool in ToolName:
        is_enabled = tool in enabled
        if enabled_only and not is_enabled:
            continue
        group = TOOL_GROUPS[tool]
        family = GROUP_KEY_FAMILY[group]
        key_env = context.gateway.upstreams[family].api_key_env_var if family else None
        table.add_row(
            tool.value,
            group.value,
            key_env or "-",
            Text("✓", style="green") if is_enabled else Text("✗", style="red"),
        )

    context.console.print(table)
    context.console.print(f"\n[bold]{len(enabled)}[/bold] of {len(ToolName)} tools enabled")


def register_command(main_app: typer.Typer) -> None:
    """Register the tools command with main app."""
    main_app.command(name="tools")(tools)
