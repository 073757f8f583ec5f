"""Layering of configuration sources, lowest priority first."""

from __future__ import annotations

from typing import Any

from agentlab.context.dotpath import deep_union


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay one config layer on another.

    None in override keeps the base value, so a layer may leave keys unset.
    """
    return deep_union(base, override, skip_none=True)


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for config in filter(None, configs):
        result = deep_merge(result, config)
    return result
