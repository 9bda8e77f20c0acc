"""Dotted-path helpers for the namespaced data bag."""

from __future__ import annotations

from typing import Any, Dict, Mapping

_MISSING = object()


def get_path(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Return the value at ``path`` (e.g. ``"scenario.title"``) or ``default``."""
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return default
    return current


def set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at ``path``, creating intermediate dictionaries."""
    keys = path.split(".")
    current = data
    for key in keys[:-1]:
        nested = current.get(key)
        if not isinstance(nested, dict):
            nested = {}
            current[key] = nested
        current = nested
    current[keys[-1]] = value


def is_missing(value: Any) -> bool:
    """Missing means absent, ``None``, an empty string or an empty container."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0:
        return True
    return False


def merge_data(data: Dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Merge ``updates`` into ``data`` one namespace deep."""
    for key, value in updates.items():
        existing = data.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            existing.update(value)
        else:
            data[key] = value
