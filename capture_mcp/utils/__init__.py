"""Shared utilities: logging, sanitization and date helpers."""
