"""Tests for the direction router."""

from __future__ import annotations

import pytest

from agentlab.context import Context, Tab, TabType
from agentlab.dsl.router import DEFAULT_PAUSE_MESSAGE, Router
from agentlab.handlers import Handler, HandlerRegistry
from agentlab.process.shell import ShellResult


class BoomHandler(Handler):
    name = "boom"
    description = "Always raises"

    def main(self, context, *args):
        raise RuntimeError("kaboom")


class HollowHandler(Handler):
    name = "hollow"
    description = "Has no main()"


class PickyHandler(Handler):
    name = "picky"
    description = "Rejects every argument"

    def validate_arguments(self, argument, context, depth=0):
        return False if argument else True

    def main(self, context):
        return context.set_result("ok")


class WaitHandler(Handler):
    name = "wait"
    description = "Pauses with a custom message"

    def main(self, context):
        return context.set_pause("Look at this first.")


class TestScenarios:
    def test_variable_set_then_get(self, lab, ctx):
        ctx = lab.submit(ctx, "$greeting hello")
        assert ctx.result == {"greeting": "hello"}
        assert lab.workspace.get("greeting") == "hello"

        ctx = lab.submit(ctx.set_result(None), "$greeting")
        assert ctx.result == {"greeting": "hello"}

    def test_sort_then_take(self, lab, ctx):
        ctx.set_result([3, 1, 2])
        ctx = lab.submit(ctx, "^sort")
        assert ctx.result == [1, 2, 3]
        ctx = lab.submit(ctx, "^take:2")
        assert ctx.result == [1, 2]

    def test_parallel_help_and_shell(self, lab, ctx, fake_shell, acknowledged):
        fake_shell.responses["echo hi"] = ShellResult(status=0, body=["hi"])

        ctx = lab.submit(ctx, "*(/help)*(!echo hi)")

        assert ctx.result == ["hi"]
        assert "Help information displayed successfully." in ctx.success
        assert ctx.pause is True
        assert acknowledged == [DEFAULT_PAUSE_MESSAGE]
        assert fake_shell.calls == [("echo", "hi")]

    def test_parallel_append_adds_each_contribution_once(self, lab, ctx):
        ctx.set_result(["x"])
        ctx = lab.submit(ctx, "+*(!echo a)*(!echo b)")
        assert ctx.result == ["x", "echo a", "echo b"]

    def test_parallel_append_to_mapping(self, lab, ctx):
        ctx.set_result({"keep": 1})
        ctx = lab.submit(ctx, "+*($p 1)*($q 2)")
        assert ctx.result == {"keep": 1, "p": 1, "q": 2}

    def test_slices(self, lab, ctx):
        ctx.set_result([1, 2, 3, 4, 5])
        dropped_last = lab.submit(ctx.copy(), "-2")
        dropped_first = lab.submit(ctx.copy(), "--2")
        assert dropped_last.result == [1, 2, 3]
        assert dropped_first.result == [3, 4, 5]

    def test_zero_slice_clears_result(self, lab, ctx):
        ctx.set_result([1, 2])
        assert lab.submit(ctx, "-0").result is None

    def test_slice_ignores_non_list(self, lab, ctx):
        ctx.set_result({"a": 1})
        assert lab.submit(ctx, "-1").result == {"a": 1}


class TestErrors:
    def test_invalid_format(self, lab, ctx):
        ctx = lab.submit(ctx, "hello there")
        assert ctx.error == ["Invalid command format."]

    def test_unknown_command_is_reoffered(self, lab, ctx):
        ctx = lab.submit(ctx, "+/nope some args")
        assert ctx.error == ["Unknown command: nope"]
        assert ctx.next_command == "+/nope some args"

    def test_handler_exception(self, lab, ctx):
        lab.register(BoomHandler())
        ctx = lab.submit(ctx, "/boom now")
        assert ctx.error == ["Error executing command 'boom': kaboom"]
        assert ctx.next_command == "/boom now"

    def test_not_implemented(self, lab, ctx):
        lab.register(HollowHandler())
        ctx = lab.submit(ctx, "/hollow")
        assert ctx.error == ["Command not implemented: hollow"]

    def test_invalid_argument(self, lab, ctx):
        lab.register(PickyHandler())
        ctx = lab.submit(ctx, "/picky x")
        assert ctx.error == ["Invalid argument for command: picky"]
        assert ctx.next_command == "/picky x"
        assert lab.submit(ctx.clear_meta(), "/picky").result == "ok"

    def test_depth_limit(self, lab, ctx):
        ctx.set_result([2, 1])
        ctx = lab.router.submit(ctx, "^sort", depth=lab.router.max_depth)
        assert ctx.error == [
            "Maximum recursion depth exceeded (10 levels). Aborting transform chain."
        ]
        assert ctx.result == [2, 1]

    def test_depth_limit_is_configurable(self):
        router = Router(HandlerRegistry(), max_depth=2)
        ctx = router.dispatch(Context(), "", "/", "anything", None, depth=3)
        assert ctx.error == [
            "Maximum recursion depth exceeded (2 levels). Aborting transform chain."
        ]


class TestIsolated:
    def test_result_not_persisted(self, lab, ctx):
        ctx.set_result(["a"])
        ctx = lab.submit(ctx, "&^upper")
        assert ctx.result == ["a"]
        assert ctx.info[0] == "[ISOLATED] Executed in isolated mode - results not persisted"
        assert ctx.info[1].startswith("[ISOLATED] Result would be:")
        assert '"A"' in ctx.info[1]

    def test_reports_messages(self, lab, ctx):
        ctx = lab.submit(ctx, "&/var missing")
        assert ctx.is_ok()
        assert any(line.startswith("[ISOLATED] Errors:") for line in ctx.info)

    def test_exception(self, lab, ctx):
        lab.register(BoomHandler())
        ctx = lab.submit(ctx, "&/boom")
        assert ctx.error == ["Error executing command 'boom': kaboom"]
        assert ctx.info == [
            "[ISOLATED] Exception occurred in isolated mode - main context not affected"
        ]


class TestShell:
    def test_replaces_result(self, lab, ctx, fake_shell):
        ctx.set_result(["old"])
        ctx = lab.submit(ctx, "!ls -la")
        assert fake_shell.calls == [("ls", "-la")]
        assert ctx.result == ["ls -la"]

    def test_append_modifier(self, lab, ctx):
        ctx.set_result(["old"])
        ctx = lab.submit(ctx, "+!pwd")
        assert ctx.result == ["old", "pwd"]

    def test_failure(self, lab, ctx, fake_shell):
        fake_shell.responses["false"] = ShellResult(status=1, body=[])
        ctx = lab.submit(ctx, "!false")
        assert ctx.error == ["Command execution failed."]
        assert ctx.result == []

    @pytest.mark.parametrize("suffix", ["-dbg", "--debug"])
    def test_debug_keeps_status(self, lab, ctx, fake_shell, suffix):
        ctx = lab.submit(ctx, f"!ls {suffix}")
        assert fake_shell.calls == [("ls", None)]
        assert ctx.result == {"ls0": {"status": 0, "body": ["ls"]}}

    def test_debug_key_counts_existing_entries(self, lab, ctx):
        ctx.set_result({"a": 1, "b": 2})
        ctx = lab.submit(ctx, "!ls -al -dbg")
        assert ctx.result["ls2"] == {"status": 0, "body": ["ls -al"]}
        assert ctx.result["a"] == 1


class TestAnnotations:
    @pytest.mark.parametrize(
        "text, field",
        [
            ("#warn careful", "warning"),
            ("#error broken", "error"),
            ("#ok done", "success"),
            ("#note remember", "info"),
            ("#anything else", "info"),
        ],
    )
    def test_routing(self, lab, ctx, text, field):
        ctx = lab.submit(ctx, text)
        assert getattr(ctx, field) == [text[1:]]


class TestPause:
    def test_help_pauses_once(self, lab, ctx, acknowledged):
        lab.submit(ctx, "/help")
        assert acknowledged == [DEFAULT_PAUSE_MESSAGE]

    def test_nested_submit_acknowledges_at_top_only(self, lab, ctx, acknowledged):
        lab.submit(ctx, "/e /help")
        assert acknowledged == [DEFAULT_PAUSE_MESSAGE]

    def test_custom_message(self, lab, ctx, acknowledged):
        lab.register(WaitHandler())
        lab.submit(ctx, "/wait")
        assert acknowledged == ["Look at this first."]

    def test_help_via_question_mark(self, lab, ctx, console):
        ctx = lab.submit(ctx, "?var")
        assert ctx.is_ok()
        assert "Variable Management" in console.file.getvalue()


class TestTabs:
    def _with_tabs(self, ctx: Context) -> Context:
        ctx.ensure_main_tab()
        ctx.set_tabs(
            {"proc-001": Tab(id="proc-001", name="sleep", type=TabType.PROCESS)}, append=True
        )
        return ctx

    def test_next_and_previous_wrap(self, lab, ctx):
        ctx = self._with_tabs(ctx)
        ctx = lab.submit(ctx, "tab-next")
        assert ctx.active_tab == "proc-001"
        assert ctx.tabs["proc-001"].is_active()
        assert not ctx.tabs["main"].is_active()

        ctx = lab.submit(ctx, "tab-next")
        assert ctx.active_tab == "main"

        ctx = lab.submit(ctx, "tab-previous")
        assert ctx.active_tab == "proc-001"

    def test_without_tabs_is_noop(self, lab, ctx):
        ctx = lab.submit(ctx, "tab-next")
        assert ctx.is_ok()
        assert ctx.active_tab is None


class TestSuggestions:
    def test_handler_names(self, lab):
        suggestions = lab.router.suggestions("/va")
        assert "/var" in suggestions

    def test_handler_options(self, lab):
        suggestions = lab.router.suggestions("/transform ta")
        assert "/transform take:N" in suggestions

    def test_keeps_modifier(self, lab):
        assert "+/transform" in lab.router.suggestions("+/transform")

    def test_directions(self):
        assert set(Router.directions()) == set("/@!?#^$")
