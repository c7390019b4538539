"""CLI command context and shared utilities.

Provides CommandContext dataclass for dependency injection of shared state
across CLI commands.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field

from loguru import logger
from rich.console import Console

from ..config.schemas import CaptureConfig
from ..gateway import RequestGateway
from ..tools.registry import ToolRegistry


@dataclass
class CommandContext:
    """Shared context for CLI commands.

    Attributes:
        config: Server configuration
        console: Rich console for formatted output (stdout)
        gateway: Rate-limited request gateway
        registry: Tool registry bound to the gateway
        run_id: Unique identifier for this CLI session
        logger: Loguru logger with context binding
    """

    config: CaptureConfig
    console: Console
    gateway: RequestGateway
    registry: ToolRegistry
    run_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def __post_init__(self) -> None:
        """Set up structured logging context after initialization."""
        self.logger = logger.bind(
            component="cli",
            run_id=self.run_id,
            environment=self.config.server.environment,
        )

    @classmethod
    def create(cls, config: CaptureConfig | None = None, run_id: str | None = None) -> CommandContext:
        """Create a CommandContext with a gateway and registry.

        Args:
            config: Optional CaptureConfig. If None, loads from get_config().
            run_id: Optional run identifier. If None, generates a unique ID.

        Returns:
            CommandContext instance
        """
        from ..config.loader import get_config

        if config is None:
            config = get_config()

        gateway = RequestGateway(config)
        ctx_kwargs = {
            "config": config,
            "console": Console(),
            "gateway": gateway,
            "registry": ToolRegistry(gateway, config),
        }
        if run_id is not None:
            ctx_kwargs["run_id"] = run_id

        context = cls(**ctx_kwargs)
        context.logger.debug("CLI session started", pid=os.getpid())
        return context
