"""Call command: invoke one tool and print its JSON result."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from ...models.api import FailureKind
from ...tools.registry import ToolRegistry
from ..context import CommandContext
from ..errors import CLIError, handle_error


def is_network_failure(result: dict[str, Any]) -> bool:
    """True when a tool result reports that an upstream was unreachable."""
    details = result.get("details") if isinstance(result, dict) else None
    return isinstance(details, dict) and details.get("failure_kind") == FailureKind.NETWORK.value


def parse_tool_args(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CLIError(
            f"--args is not valid JSON: {e}",
            suggestions=['Quote the object for your shell, e.g. --args \'{"agency_code": "075"}\''],
        ) from e
    if not isinstance(parsed, dict):
        raise CLIError("--args must be a JSON object")
    return parsed


async def call_with_retries(
    registry: ToolRegistry,
    tool: str,
    args: dict[str, Any],
    retries: int = 0,
    retry_wait: float = 1.0,
) -> dict[str, Any]:
    """Call a tool, retrying network failures up to `retries` more times.

    Upstream rejections and validation errors are returned on the first attempt.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=retry_wait, max=30),
        retry=retry_if_result(is_network_failure),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return await retrying(registry.call_tool, tool, args)


def call(
    ctx: typer.Context,
    tool: str = typer.Argument(..., help="Tool name, e.g. get_usaspending_awards"),
    args: str | None = typer.Option(None, "--args", "-a", help="Tool arguments as a JSON object"),
    retries: int = typer.Option(0, "--retries", "-r", min=0, help="Retries on network failures"),
    retry_wait: float = typer.Option(1.0, "--retry-wait", min=0.0, help="Base backoff in seconds"),
) -> None:
    """Invoke a single tool and print the JSON result."""
    context: CommandContext = ctx.obj

    try:
        tool_args = parse_tool_args(args)
    except CLIError as e:
        handle_error(e)

    async def _run() -> dict[str, Any]:
        try:
            return await call_with_retries(context.registry, tool, tool_args, retries, retry_wait)
        finally:
            await context.gateway.aclose()

    result = asyncio.run(_run())
    typer.echo(json.dumps(result, indent=2, default=str))

    if "error" in result:
        context.logger.debug(f"{tool} returned an error result")
        raise typer.Exit(code=1)


def register_command(main_app: typer.Typer) -> None:
    """Register the call command with main app."""
    main_app.command(name="call")(call)
