"""Configuration loading utilities."""

from capture_mcp.config.loader import get_config, load_config_from_files, reload_config


__all__ = ["get_config", "load_config_from_files", "reload_config"]
