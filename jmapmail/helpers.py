"""Lenient accessors for values in decoded JMAP responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def get_string(mapping: Mapping[str, Any], key: str) -> str:
    """Return the string at key, or "" when it is missing or not a string."""
    value = mapping.get(key)
    return value if isinstance(value, str) else ""


def get_int(mapping: Mapping[str, Any], key: str) -> int:
    """Return the number at key truncated to an int, or 0 when it is not a number."""
    value = mapping.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def get_bool(mapping: Mapping[str, Any], key: str) -> bool:
    """Return the boolean at key, or False when it is missing or not a boolean."""
    value = mapping.get(key)
    return value if isinstance(value, bool) else False