"""Dot-path access over nested JSON-like data.

Paths address mapping keys and list indices with "." separators,
e.g. ``"user.name"`` or ``"items.0.id"``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MISSING = object()


def _child(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment, _MISSING)
    if isinstance(container, list) and segment.isdigit():
        index = int(segment)
        if index < len(container):
            return container[index]
    return _MISSING


def _assign(container: Any, segment: str, value: Any) -> None:
    if isinstance(container, dict):
        container[segment] = value
        return
    if isinstance(container, list) and segment.isdigit():
        index = int(segment)
        if index < len(container):
            container[index] = value
            return
        if index == len(container):
            container.append(value)
            return
    raise KeyError(f"Cannot set '{segment}' on {type(container).__name__}")


def data_get(target: Any, path: str | None, default: Any = None) -> Any:
    """Read the value at a dot path, or default when any segment is missing."""
    if path is None or path == "":
        return target
    current = target
    for segment in str(path).split("."):
        current = _child(current, segment)
        if current is _MISSING:
            return default
    return current


def has_path(target: Any, path: str) -> bool:
    return data_get(target, path, _MISSING) is not _MISSING


def deep_union(
    base: Mapping[str, Any], override: Mapping[str, Any], skip_none: bool = False
) -> dict[str, Any]:
    """Union two mappings, recursing where both sides hold a mapping.

    Scalars and lists in override replace the base value. With skip_none,
    None in override leaves the base value in place.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None and skip_none:
            continue
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = deep_union(existing, value, skip_none)
        else:
            result[key] = value
    return result


def data_set(target: Any, path: str, value: Any, merge: bool = False) -> None:
    """Write value at a dot path, creating intermediate mappings.

    Args:
        target: Mapping (or list) to mutate in place.
        path: Dot path to write.
        value: Value to store.
        merge: Deep-union into an existing mapping instead of replacing it.
    """
    segments = str(path).split(".")
    current = target
    for segment in segments[:-1]:
        child = _child(current, segment)
        if not isinstance(child, (dict, list)):
            child = {}
            _assign(current, segment, child)
        current = child

    last = segments[-1]
    existing = _child(current, last)
    if merge and isinstance(existing, Mapping) and isinstance(value, Mapping):
        value = deep_union(existing, value)
    _assign(current, last, value)


def data_forget(target: Any, path: str) -> None:
    """Remove the value at a dot path. Missing paths are ignored."""
    segments = str(path).split(".")
    parent = data_get(target, ".".join(segments[:-1])) if len(segments) > 1 else target
    last = segments[-1]
    if isinstance(parent, dict):
        parent.pop(last, None)
    elif isinstance(parent, list) and last.isdigit() and int(last) < len(parent):
        del parent[int(last)]


def dots(data: Any, prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings and lists into ``{"a.b.0": value}`` pairs.

    Empty containers are kept as leaf values.
    """
    flat: dict[str, Any] = {}
    if isinstance(data, Mapping):
        items = [(str(k), v) for k, v in data.items()]
    elif isinstance(data, list):
        items = [(str(i), v) for i, v in enumerate(data)]
    else:
        return {prefix: data} if prefix else {}

    for key, value in items:
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, (Mapping, list)) and value:
            flat.update(dots(value, path))
        else:
            flat[path] = value
    return flat
