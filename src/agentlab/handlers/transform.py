"""Transform pipeline, reached through ``^name[:param]``.

Each transform maps the current result to a new one. Sequence transforms
leave scalars untouched; string transforms apply element-wise to sequences
and mapping values. A None result is treated as an empty list.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from agentlab.errors import TransformError
from agentlab.handlers.base import Arguments, Handler

if TYPE_CHECKING:
    from agentlab.context.carrier import Context

TransformFn = Callable[[Any, "str | None"], Any]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _string_op(op: Callable[[str], str]) -> TransformFn:
    def apply(value: Any, _param: str | None) -> Any:
        if isinstance(value, list):
            return [op(_text(item)) for item in value]
        if isinstance(value, dict):
            return {key: op(_text(item)) for key, item in value.items()}
        return op(_text(value))

    return apply


def _items(value: Any) -> list[Any]:
    return list(value.values()) if isinstance(value, dict) else list(value)


def _int_param(param: str | None, default: int) -> int:
    if not param:
        return default
    try:
        return int(param)
    except ValueError as e:
        raise TransformError(f"Invalid numeric parameter: {param}") from e


def _number(value: Any) -> int | float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        for cast in (int, float):
            try:
                return cast(value.strip())
            except ValueError:
                continue
    return 0


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, json.dumps(value, sort_keys=True, default=str))


def _identity(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def loose_equals(value: Any, expected: str) -> bool:
    """Compare a field value against filter text with type coercion.

    Numbers compare numerically when the text is numeric, booleans by the
    truthiness of the text, None equals the empty string, and everything
    else compares as text.
    """
    if value is None:
        return expected in ("", "null")
    if isinstance(value, bool):
        return value == (expected not in ("", "0", "false"))
    if isinstance(value, (int, float)):
        try:
            return float(expected) == float(value)
        except ValueError:
            return str(value) == expected
    return _text(value) == expected


def _count(value: Any, _param: str | None) -> dict[str, int]:
    if isinstance(value, (list, dict)):
        return {"count": len(value)}
    return {"count": len(_text(value))}


def _keys(value: Any, _param: str | None) -> Any:
    if isinstance(value, dict):
        return list(value)
    if isinstance(value, list):
        return list(range(len(value)))
    return value


def _values(value: Any, _param: str | None) -> Any:
    if isinstance(value, (list, dict)):
        return _items(value)
    return value


def _first(value: Any, _param: str | None) -> Any:
    if isinstance(value, (list, dict)):
        items = _items(value)
        return items[0] if items else None
    return value


def _last(value: Any, _param: str | None) -> Any:
    if isinstance(value, (list, dict)):
        items = _items(value)
        return items[-1] if items else None
    return value


def _reverse(value: Any, _param: str | None) -> Any:
    if isinstance(value, list):
        return list(reversed(value))
    if isinstance(value, dict):
        return dict(reversed(list(value.items())))
    return value


def _sort(value: Any, _param: str | None) -> Any:
    if isinstance(value, (list, dict)):
        return sorted(_items(value), key=_sort_key)
    return value


def _unique(value: Any, _param: str | None) -> Any:
    if isinstance(value, list):
        seen: set[str] = set()
        unique = []
        for item in value:
            marker = _identity(item)
            if marker not in seen:
                seen.add(marker)
                unique.append(item)
        return unique
    if isinstance(value, dict):
        seen_values: set[str] = set()
        kept = {}
        for key, item in value.items():
            marker = _identity(item)
            if marker not in seen_values:
                seen_values.add(marker)
                kept[key] = item
        return kept
    return value


def _flatten(value: Any, _param: str | None) -> Any:
    if not isinstance(value, (list, dict)):
        return value
    flat: list[Any] = []
    for item in _items(value):
        if isinstance(item, (list, dict)):
            flat.extend(_items(item))
        else:
            flat.append(item)
    return flat


def _json(value: Any, _param: str | None) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _array(value: Any, _param: str | None) -> Any:
    if isinstance(value, (list, dict)):
        return value
    if value is None:
        return []
    return [value]


def _sum(value: Any, _param: str | None) -> dict[str, int | float]:
    if isinstance(value, (list, dict)):
        return {"sum": sum(_number(item) for item in _items(value))}
    return {"sum": _number(value)}


def _take(value: Any, param: str | None) -> Any:
    size = _int_param(param, 10)
    if isinstance(value, list):
        return value[:size]
    if isinstance(value, dict):
        return dict(list(value.items())[:size])
    return value


def _skip(value: Any, param: str | None) -> Any:
    offset = _int_param(param, 0)
    if isinstance(value, list):
        return value[offset:]
    if isinstance(value, dict):
        return dict(list(value.items())[offset:])
    return value


def _chunk(value: Any, param: str | None) -> Any:
    size = _int_param(param, 1)
    if size < 1:
        raise TransformError("Chunk size must be greater than 0")
    if not isinstance(value, (list, dict)):
        return [value]
    items = _items(value)
    return [items[i : i + size] for i in range(0, len(items), size)]


def _pluck(value: Any, param: str | None) -> Any:
    if not isinstance(value, (list, dict)):
        return value
    return [item[param] for item in _items(value) if isinstance(item, dict) and param in item]


def _map(value: Any, param: str | None) -> Any:
    if not isinstance(value, (list, dict)):
        return value
    return [item.get(param) if isinstance(item, dict) else None for item in _items(value)]


def _filter(value: Any, param: str | None) -> Any:
    if not isinstance(value, (list, dict)) or not param:
        return value
    field, _, expected = param.partition("=")

    def keep(item: Any) -> bool:
        return isinstance(item, dict) and field in item and loose_equals(item[field], expected)

    if isinstance(value, dict):
        return {key: item for key, item in value.items() if keep(item)}
    return [item for item in value if keep(item)]


TRANSFORMS: dict[str, TransformFn] = {
    "upper": _string_op(str.upper),
    "lower": _string_op(str.lower),
    "trim": _string_op(str.strip),
    "count": _count,
    "keys": _keys,
    "values": _values,
    "first": _first,
    "last": _last,
    "reverse": _reverse,
    "sort": _sort,
    "unique": _unique,
    "flatten": _flatten,
    "json": _json,
    "array": _array,
    "sum": _sum,
    "take": _take,
    "skip": _skip,
    "chunk": _chunk,
    "pluck": _pluck,
    "map": _map,
    "filter": _filter,
}

DESCRIPTIONS = {
    "upper": "Uppercase string",
    "lower": "Lowercase string",
    "trim": "Trim whitespace",
    "count": "Count elements",
    "keys": "Get keys",
    "values": "Get values",
    "first": "First element",
    "last": "Last element",
    "reverse": "Reverse order",
    "sort": "Sort elements",
    "unique": "Remove duplicates",
    "flatten": "Flatten one level of nesting",
    "json": "Convert to JSON",
    "array": "Cast to list",
    "sum": "Sum numeric values",
    "take:N": "Take first N elements",
    "skip:N": "Skip first N elements",
    "chunk:N": "Split into N-sized chunks",
    "pluck:field": "Extract field from items",
    "filter:key=val": "Filter by field value",
    "map:field": "Extract field from each item",
}


def apply_transform(name: str, value: Any, param: str | None = None) -> Any:
    """Apply a named transform to value.

    Raises:
        TransformError: If the transform is unknown or its parameter is invalid.
    """
    transform = TRANSFORMS.get(name.lower())
    if transform is None:
        raise TransformError(f"Unknown transform: {name}")
    return transform([] if value is None else value, param)


class TransformHandler(Handler):
    name = "transform"
    title = "Transform Functions"
    description = "Apply transformations to the current result"
    argument_description = "<transform[:param]>"
    dispatch_keywords = True

    def validate_arguments(
        self, argument: str | None, context: Context, depth: int = 0
    ) -> bool | str | Arguments:
        # Parameters like "status=active" must reach main() verbatim.
        if not argument:
            return True
        name, _, param = argument.strip().partition(" ")
        param = param.strip()
        return Arguments(args=[name], kwargs={"param": param} if param else {})

    def main(
        self,
        context: Context,
        transform: str = "",
        param: str | None = None,
        *,
        modifier: str = "",
        depth: int = 0,
    ) -> Context:
        name, sep, inline = transform.partition(":")
        name = name.lower()
        if sep:
            param = f"{inline} {param}" if param else inline

        try:
            result = apply_transform(name, context.result, param)
        except Exception as e:
            return context.set_error(f"Transform '^{name}' failed: {e}")

        return context.set_result(result, append=modifier == "+")

    def options(self, prefix: str = "") -> dict[str, str]:
        return {key: label for key, label in DESCRIPTIONS.items() if key.startswith(prefix)}
