"""Lenient field coercion shared by the definition builders."""
from __future__ import annotations

from typing import Mapping


def first_present(payload: Mapping[str, object], *keys: str) -> object:
    """Return the first non-null value among the given keys."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def optional_number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)
