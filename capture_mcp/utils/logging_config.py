"""Structured logging configuration using loguru."""

import sys
from contextvars import ContextVar
from pathlib import Path

from loguru import logger

from ..config.loader import get_config

# Context variables for structured logging
tool_context: ContextVar[str | None] = ContextVar("tool", default=None)
request_id_context: ContextVar[str | None] = ContextVar("request_id", default=None)

logger.configure(extra={"tool": "-", "request_id": "-"})


def setup_logging(
    level: str = "INFO",
    format: str | None = None,
    format_type: str | None = None,
    file_path: str | None = None,
    max_file_size_mb: int = 100,
    backup_count: int = 5,
    include_tool: bool = True,
    include_request_id: bool = True,
    include_timestamps: bool = True,
) -> None:
    """Set up structured logging configuration.

    Notes:
    - The console sink writes to stderr; stdout carries the stdio protocol stream.
    - `format_type` takes precedence over `format` if both are provided.
    - Invalid logging level names fall back to 'INFO'.
    """
    logger.remove()

    format_type_local = format_type or format or "text"

    format_parts = []

    if include_timestamps:
        format_parts.append("<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>")

    format_parts.append("<level>{level: <8}</level>")

    if include_tool:
        format_parts.append("<cyan>{extra[tool]: <28}</cyan>")

    if include_request_id:
        format_parts.append("<magenta>{extra[request_id]: <8}</magenta>")

    format_parts.append("<level>{message}</level>")

    if format_type_local == "json":
        log_format = "{message}"
        serialize = True
    else:
        log_format = " | ".join(format_parts)
        serialize = False

    safe_level = "INFO"
    invalid_level = False
    try:
        logger.level(level)
        safe_level = level
    except ValueError:
        invalid_level = True

    logger.add(
        sys.stderr,
        level=safe_level,
        format=log_format,
        serialize=serialize,
        colorize=format_type_local != "json",
    )

    if file_path:
        log_file_path = Path(file_path)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file_path,
            level=safe_level,
            format=log_format,
            serialize=serialize,
            rotation=f"{max_file_size_mb} MB",
            retention=backup_count,
            encoding="utf-8",
        )

    if invalid_level:
        logger.warning(f"Invalid logging level '{level}' provided; falling back to 'INFO'")


def configure_logging_from_config(level_override: str | None = None) -> None:
    """Configure logging using the current configuration."""
    config = get_config()

    setup_logging(
        level=level_override or config.logging.level,
        format_type=config.logging.format,
        file_path=config.logging.file_path,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
        include_tool=config.logging.include_tool,
        include_request_id=config.logging.include_request_id,
        include_timestamps=config.logging.include_timestamps,
    )


class LogContext:
    """Context manager for adding tool/request context to log messages."""

    def __init__(self, tool: str | None = None, request_id: str | None = None):
        """Initialize log context.

        Args:
            tool: Tool name being dispatched
            request_id: Identifier for this tool call
        """
        self.tool = tool
        self.request_id = request_id
        self.tool_token = None
        self.request_id_token = None
        self._contextualized = None

    def __enter__(self):
        """Set context variables and bind them to the logger."""
        if self.tool is not None:
            self.tool_token = tool_context.set(self.tool)
        if self.request_id is not None:
            self.request_id_token = request_id_context.set(self.request_id)

        extra = {}
        if self.tool:
            extra["tool"] = self.tool
        if self.request_id:
            extra["request_id"] = self.request_id

        if extra:
            # contextualize() makes the values visible to every logger call in this task
            self._contextualized = logger.contextualize(**extra)
            self._contextualized.__enter__()
            return logger.bind(**extra)
        return logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Reset context variables."""
        if self._contextualized is not None:
            self._contextualized.__exit__(exc_type, exc_val, exc_tb)
            self._contextualized = None
        if self.tool_token is not None:
            tool_context.reset(self.tool_token)
        if self.request_id_token is not None:
            request_id_context.reset(self.request_id_token)


def log_with_context(tool: str | None = None, request_id: str | None = None):
    """Context manager for logging with tool/request context.

    Returns:
        Context manager that yields a logger with context
    """
    return LogContext(tool=tool, request_id=request_id)
