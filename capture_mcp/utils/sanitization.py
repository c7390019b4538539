"""Input sanitization for tool arguments.

Every tool call passes its raw arguments through `sanitize_input` exactly once,
before any value is used to build an upstream request or is echoed back in a
result. The function returns a deep copy; the caller's object is not touched.

Key Features:
- Strips C0/C1 control characters (including tab, newline and DEL)
- Trims surrounding whitespace
- Recurses into lists, tuples and mappings (key order preserved)
- Optional strict mode that also drops ``< > " ' &``
- Idempotent: sanitize_input(sanitize_input(x)) == sanitize_input(x)
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any


CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
STRICT_CHARS_RE = re.compile(r"[<>\"'&]")


def sanitize_string(value: str, *, strict: bool = False) -> str:
    """Remove control characters (and markup characters in strict mode), then trim.

    Examples:
        >>> sanitize_string("  Acme\\x00 Corp\\n ")
        'Acme Corp'
        >>> sanitize_string("<Johnson & Johnson>", strict=True)
        'Johnson  Johnson'
    """
    cleaned = CONTROL_CHARS_RE.sub("", value)
    if strict:
        cleaned = STRICT_CHARS_RE.sub("", cleaned)
    return cleaned.strip()


def sanitize_input(value: Any, *, strict: bool = False) -> Any:
    """Recursively sanitize a tool argument value.

    Args:
        value: Raw argument (scalar, sequence or mapping)
        strict: Also strip angle brackets, quotes and ampersands from strings

    Returns:
        A cleaned deep copy. Non-string scalars pass through unchanged.
    """
    if isinstance(value, str):
        return sanitize_string(value, strict=strict)

    if isinstance(value, Mapping):
        return {key: sanitize_input(item, strict=strict) for key, item in value.items()}

    if isinstance(value, list):
        return [sanitize_input(item, strict=strict) for item in value]

    if isinstance(value, tuple):
        return tuple(sanitize_input(item, strict=strict) for item in value)

    return value
