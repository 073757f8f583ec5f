"""Tests for the Context carrier, tabs and snapshot persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agentlab.context import MAIN_TAB_ID, Context, ContextSnapshot, Tab, TabState, TabType
from agentlab.errors import HandlerConfigError, LabError
from agentlab.handlers import HandlerRegistry, ProcessHandler


class TestResult:
    """Replace and append semantics of set_result."""

    def test_replace(self):
        ctx = Context(result=[1, 2])
        ctx.set_result({"a": 1})
        assert ctx.result == {"a": 1}

    def test_append_mapping_deep_unions(self):
        ctx = Context(result={"user": {"name": "ada", "age": 36}})
        ctx.set_result({"user": {"age": 37}, "x": 1}, append=True)
        assert ctx.result == {"user": {"name": "ada", "age": 37}, "x": 1}

    def test_append_mapping_dot_path_keys_nest(self):
        ctx = Context(result={})
        ctx.set_result({"a.b": 1}, append=True)
        assert ctx.result == {"a": {"b": 1}}

    def test_append_mapping_to_scalar_starts_fresh(self):
        ctx = Context(result="text")
        ctx.set_result({"k": "v"}, append=True)
        assert ctx.result == {"k": "v"}

    def test_append_mapping_to_list_adds_element(self):
        ctx = Context(result=["a"])
        ctx.set_result({"k": "v"}, append=True)
        assert ctx.result == ["a", {"k": "v"}]

    def test_append_list_extends_list(self):
        ctx = Context(result=["a"])
        ctx.set_result(["b", "c"], append=True)
        assert ctx.result == ["a", "b", "c"]

    def test_append_list_to_mapping_numbers_keys(self):
        ctx = Context(result={"0": "a", "name": "x"})
        ctx.set_result(["b", "c"], append=True)
        assert ctx.result == {"0": "a", "name": "x", "1": "b", "2": "c"}

    def test_append_list_to_none(self):
        ctx = Context()
        ctx.set_result(["x"], append=True)
        assert ctx.result == ["x"]

    def test_append_scalar_replaces(self):
        ctx = Context(result=["a"])
        ctx.set_result("b", append=True)
        assert ctx.result == "b"


class TestMessages:
    def test_replace_and_append(self):
        ctx = Context()
        ctx.set_info("one").set_info("two", append=True)
        assert ctx.info == ["one", "two"]
        ctx.set_info("three")
        assert ctx.info == ["three"]

    def test_error_state(self):
        ctx = Context()
        assert ctx.is_ok()
        assert ctx.get_error() is None
        ctx.set_error(["bad", "worse"])
        assert not ctx.is_ok()
        assert ctx.get_error() == "bad\nworse"

    def test_next_command_joins_argument(self):
        ctx = Context().set_next_command("/var", "x 1")
        assert ctx.next_command == "/var x 1"
        assert Context().set_next_command("/var").next_command == "/var"

    def test_next_variants_from_string(self):
        ctx = Context().set_next_variants("/help")
        assert ctx.next_variants == {"/help": "/help"}

    def test_properties_return_copies(self):
        ctx = Context(info=["a"])
        ctx.info.append("b")
        assert ctx.info == ["a"]


class TestOnChange:
    def test_every_mutator_fires_once(self):
        calls: list[Context] = []
        ctx = Context().attach(on_change=calls.append)

        ctx.set_result(1)
        ctx.set_info("i")
        ctx.set_pause()
        ctx.set_next_command("/x")
        ctx.clear_meta()

        assert len(calls) == 5
        assert all(c is ctx for c in calls)

    def test_copy_is_detached(self):
        calls: list[Context] = []
        ctx = Context(result=[1]).attach(on_change=calls.append)
        clone = ctx.copy()
        clone.set_result([2])
        assert calls == []
        assert ctx.result == [1]


class TestClearMeta:
    def test_keeps_result_and_processes(self, ctx, lab):
        ctx.set_result(["r"]).set_info("i").set_error("e").set_pause("wait")
        ctx.set_next_variants({"/a": "A"}).set_next_command("/a")
        ctx.process("spawn x", "proc", "spawn_deferred", "x")
        ctx.ensure_main_tab()

        ctx.clear_meta()

        assert ctx.result == ["r"]
        assert ctx.info == [] and ctx.error == []
        assert ctx.pause is False
        assert ctx.next_variants == {}
        assert ctx.next_command is None
        assert ctx.tabs == {}
        assert len(ctx.processes) == 1


class TestProcesses:
    def test_requires_registry(self):
        with pytest.raises(HandlerConfigError):
            Context().process("x", "proc", "spawn_deferred")

    def test_unknown_handler(self):
        ctx = Context().attach(registry=HandlerRegistry())
        with pytest.raises(HandlerConfigError, match="does not exist"):
            ctx.process("x", "missing", "main")

    def test_missing_method(self, ctx):
        with pytest.raises(HandlerConfigError, match="Method nope"):
            ctx.process("x", "proc", "nope")

    def test_is_lab_error_and_value_error(self):
        assert issubclass(HandlerConfigError, LabError)
        assert issubclass(HandlerConfigError, ValueError)

    def test_accepts_handler_class(self, ctx):
        ctx.process("spawn ls", ProcessHandler, "spawn_deferred", "ls")
        assert ctx.processes == [
            {
                "name": "spawn ls",
                "handler_class": "proc",
                "handler_method": "spawn_deferred",
                "args": ["ls"],
            }
        ]

    def test_take_processes_drains(self, ctx):
        ctx.process("a", "proc", "spawn_deferred", "a")
        drained = ctx.take_processes()
        assert len(drained) == 1
        assert ctx.processes == []


class TestMerge:
    def test_merge_appends_each_field(self):
        target = Context(result=["a"], info=["i1"])
        other = Context(result=["b"], info=["i2"], error=["e"], pause="wait")
        target.merge(other)
        assert target.result == ["a", "b"]
        assert target.info == ["i1", "i2"]
        assert target.error == ["e"]
        assert target.pause == "wait"

    def test_merge_skips_empty_result_and_unset_pause(self):
        target = Context(result=["a"], pause=True)
        target.merge(Context(result=[]))
        assert target.result == ["a"]
        assert target.pause is True

    def test_merge_none_is_noop(self):
        target = Context(result=1)
        assert target.merge(None) is target

    def test_merge_selected_fields(self):
        target = Context(result=["a"])
        other = Context(result=["b"], info=["i"])
        target.merge(other, result=False)
        assert target.result == ["a"]
        assert target.info == ["i"]

    def test_merge_general_skips_messages(self):
        target = Context()
        target.merge_general(Context(result={"k": 1}, error=["e"]))
        assert target.result == {"k": 1}
        assert target.is_ok()

    def test_merge_revalidates_processes(self, ctx):
        other = Context(
            processes=[
                {"name": "x", "handler_class": "nope", "handler_method": "main", "args": []}
            ]
        )
        with pytest.raises(HandlerConfigError):
            ctx.merge(other)


class TestTabs:
    def test_ensure_main_tab(self):
        ctx = Context().ensure_main_tab()
        assert list(ctx.tabs) == [MAIN_TAB_ID]
        assert ctx.active_tab == MAIN_TAB_ID
        assert ctx.tabs[MAIN_TAB_ID].type is TabType.MAIN
        assert ctx.tabs[MAIN_TAB_ID].is_active()

    def test_ensure_main_tab_is_idempotent(self):
        ctx = Context().ensure_main_tab()
        ctx.set_active_tab("other")
        ctx.ensure_main_tab()
        assert len(ctx.tabs) == 1
        assert ctx.active_tab == "other"

    def test_tab_glyphs(self):
        tab = Tab(id="proc-001", name="sleep", type=TabType.PROCESS)
        assert tab.icon == "[P]"
        assert tab.indicator == "○"
        assert tab.mark_has_updates().indicator == "◉"
        assert tab.mark_completed().indicator == "✓"
        assert tab.mark_error().indicator == "✗"

    def test_tab_content(self):
        tab = Tab(id="t", name="t", type=TabType.NEW)
        tab.add_line("a").add_line("b")
        assert tab.line_count == 2
        assert tab.content == ["a", "b"]

    def test_tab_round_trip(self):
        tab = Tab(
            id="proc-002",
            name="make",
            type=TabType.PROCESS,
            state=TabState.HAS_UPDATES,
            content=["x"],
            metadata={"status": "RUNNING"},
        )
        assert Tab.from_dict(tab.to_dict()) == tab


class TestSerialization:
    def test_round_trip(self):
        ctx = Context(
            result={"a": [1, {"b": None}]},
            info=["i"],
            warning=["w"],
            next_variants={"/x": "X"},
            next_command="/x",
            pause="hold on",
        ).ensure_main_tab()
        restored = Context.from_dict(json.loads(ctx.to_json()))
        assert restored.to_json() == ctx.to_json()

    def test_copy_keeps_registry(self, ctx):
        clone = ctx.copy()
        assert clone.registry is ctx.registry
        assert ctx.blank().registry is ctx.registry
        assert ctx.blank().result is None


class TestContextSnapshot:
    def test_save_and_load_byte_identical(self, tmp_path: Path):
        snapshot = ContextSnapshot(tmp_path / "runtime.json")
        ctx = Context(result=["ä", {"n": 1}], success=["ok"]).ensure_main_tab()
        snapshot.save(ctx)
        first = snapshot.path.read_text(encoding="utf-8")

        loaded = snapshot.load()
        assert loaded is not None
        snapshot.save(loaded)
        assert snapshot.path.read_text(encoding="utf-8") == first

    def test_missing_and_corrupt(self, tmp_path: Path):
        snapshot = ContextSnapshot(tmp_path / "runtime.json")
        assert snapshot.load() is None
        snapshot.path.write_text("{nope", encoding="utf-8")
        assert snapshot.load() is None
        snapshot.path.write_text("[1, 2]", encoding="utf-8")
        assert snapshot.load() is None

    def test_attached_context_rewrites_snapshot(self, lab):
        ctx = lab.new_context(restore=False)
        ctx.set_result(["persisted"])
        restored = lab.new_context()
        assert restored.result == ["persisted"]
