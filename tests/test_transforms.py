"""Tests for the transform pipeline."""

from __future__ import annotations

import json

import pytest

from agentlab.errors import TransformError
from agentlab.handlers.transform import TRANSFORMS, apply_transform, loose_equals


class TestApplyTransform:
    def test_string_ops_are_element_wise(self):
        assert apply_transform("upper", ["a", "b"]) == ["A", "B"]
        assert apply_transform("lower", {"k": "V"}) == {"k": "v"}
        assert apply_transform("trim", "  x ") == "x"

    def test_count(self):
        assert apply_transform("count", [1, 2, 3]) == {"count": 3}
        assert apply_transform("count", "abcd") == {"count": 4}

    def test_keys_values(self):
        assert apply_transform("keys", {"a": 1, "b": 2}) == ["a", "b"]
        assert apply_transform("keys", ["x", "y"]) == [0, 1]
        assert apply_transform("values", {"a": 1, "b": 2}) == [1, 2]

    def test_first_last(self):
        assert apply_transform("first", [1, 2, 3]) == 1
        assert apply_transform("last", {"a": 1, "b": 2}) == 2
        assert apply_transform("first", []) is None

    def test_reverse_sort_unique(self):
        assert apply_transform("reverse", [1, 2, 3]) == [3, 2, 1]
        assert apply_transform("sort", [3, "b", 1, "a"]) == [1, 3, "a", "b"]
        assert apply_transform("unique", [1, 1, {"a": 1}, {"a": 1}]) == [1, {"a": 1}]

    def test_flatten_one_level(self):
        assert apply_transform("flatten", [[1, [2]], 3, {"a": 4}]) == [1, [2], 3, 4]

    def test_json(self):
        assert json.loads(apply_transform("json", {"a": [1]})) == {"a": [1]}

    def test_array(self):
        assert apply_transform("array", "x") == ["x"]
        assert apply_transform("array", [1]) == [1]

    def test_sum_coerces_numbers(self):
        assert apply_transform("sum", ["1", "2.5", 3, "x", True]) == {"sum": 6.5}

    def test_take_skip_chunk(self):
        data = list(range(12))
        assert apply_transform("take", data) == list(range(10))
        assert apply_transform("take", data, "2") == [0, 1]
        assert apply_transform("skip", data, "10") == [10, 11]
        assert apply_transform("chunk", [1, 2, 3], "2") == [[1, 2], [3]]

    def test_chunk_rejects_zero(self):
        with pytest.raises(TransformError, match="greater than 0"):
            apply_transform("chunk", [1], "0")

    def test_bad_numeric_param(self):
        with pytest.raises(TransformError, match="Invalid numeric parameter"):
            apply_transform("take", [1], "many")

    def test_pluck_and_map(self):
        rows = [{"id": 1, "n": "a"}, {"id": 2}, "x"]
        assert apply_transform("pluck", rows, "n") == ["a"]
        assert apply_transform("map", rows, "n") == ["a", None, None]

    def test_filter_loose_equality(self):
        rows = [
            {"status": "active", "id": 1},
            {"status": "idle", "id": "2"},
            {"id": 3},
        ]
        assert apply_transform("filter", rows, "status=active") == [rows[0]]
        assert apply_transform("filter", rows, "id=2") == [rows[1]]
        assert apply_transform("filter", rows, "id=1.0") == [rows[0]]
        assert apply_transform("filter", rows, "") == rows

    def test_none_treated_as_empty_list(self):
        assert apply_transform("count", None) == {"count": 0}
        assert apply_transform("sort", None) == []

    def test_unknown(self):
        with pytest.raises(TransformError, match="Unknown transform: nope"):
            apply_transform("nope", [])

    def test_name_is_case_insensitive(self):
        assert apply_transform("UPPER", "a") == "A"

    @pytest.mark.parametrize("name", ["upper", "lower", "trim", "sort", "unique", "array"])
    def test_idempotent(self, name):
        value = [" b ", "a", " b ", "C"]
        once = apply_transform(name, value)
        assert apply_transform(name, once) == once

    def test_every_transform_registered(self):
        assert set(TRANSFORMS) >= {
            "upper", "lower", "trim", "count", "keys", "values", "first", "last",
            "reverse", "sort", "unique", "flatten", "json", "array", "sum",
            "take", "skip", "chunk", "pluck", "map", "filter",
        }


class TestLooseEquals:
    def test_rules(self):
        assert loose_equals(None, "")
        assert loose_equals(None, "null")
        assert loose_equals(True, "1")
        assert loose_equals(False, "false")
        assert loose_equals(2, "2.0")
        assert not loose_equals(2, "two")
        assert loose_equals("x", "x")


class TestTransformDirection:
    """^name[:param] through the router."""

    def test_inline_param(self, lab, ctx):
        ctx.set_result([1, 2, 3])
        ctx = lab.submit(ctx, "^take:2")
        assert ctx.result == [1, 2]

    def test_spaced_param(self, lab, ctx):
        ctx.set_result([{"s": "a"}, {"s": "b"}])
        ctx = lab.submit(ctx, "^filter s=b")
        assert ctx.result == [{"s": "b"}]

    def test_inline_param_keeps_spaces(self, lab, ctx):
        ctx.set_result([{"n": "John Smith"}, {"n": "John"}])
        ctx = lab.submit(ctx, "^filter:n=John Smith")
        assert ctx.result == [{"n": "John Smith"}]
        assert ctx.is_ok()

    def test_inline_param_through_handler(self, lab, ctx):
        ctx.set_result([{"n": "John Smith"}, {"n": "John"}])
        ctx = lab.submit(ctx, "/transform filter:n=John Smith")
        assert ctx.result == [{"n": "John Smith"}]

    def test_append_modifier(self, lab, ctx):
        ctx.set_result(["a"])
        ctx = lab.submit(ctx, "+^upper")
        assert ctx.result == ["a", "A"]

    def test_failure_message(self, lab, ctx):
        ctx.set_result([1])
        ctx = lab.submit(ctx, "^chunk:0")
        assert ctx.error == ["Transform '^chunk' failed: Chunk size must be greater than 0"]
        assert ctx.result == [1]

    def test_unexpected_exception_is_reported(self, lab, ctx, monkeypatch):
        def explode(value, param):
            raise RuntimeError("kaput")

        monkeypatch.setitem(TRANSFORMS, "explode", explode)
        ctx.set_result([1])
        ctx = lab.submit(ctx, "^explode")
        assert ctx.error == ["Transform '^explode' failed: kaput"]
        assert ctx.result == [1]

    def test_unknown_transform(self, lab, ctx):
        ctx = lab.submit(ctx, "^bogus")
        assert ctx.error == ["Transform '^bogus' failed: Unknown transform: bogus"]

    def test_transform_handler_options(self, lab):
        handler = lab.registry.get("transform")
        assert "take:N" in handler.options("ta")
        assert "upper" not in handler.options("ta")
