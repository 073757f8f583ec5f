"""Context: the value-and-messages carrier threaded through DSL dispatch.

A Context holds the pipeline's current result, four message lists,
next-command suggestions, a pause flag, deferred-work descriptors and the
tab set. Every mutator fires the attached on-change callback once, which the
Lab uses to rewrite the runtime snapshot.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from agentlab.context.dotpath import data_set
from agentlab.context.tab import Tab, TabState, TabType
from agentlab.errors import HandlerConfigError

if TYPE_CHECKING:
    from agentlab.handlers.registry import HandlerRegistry

OnChange = Callable[["Context"], None]

MAIN_TAB_ID = "main"
MAIN_TAB_NAME = "Main"

_MESSAGE_FIELDS = ("info", "error", "success", "warning")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def _as_messages(value: str | Iterable[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _next_index(mapping: Mapping[str, Any]) -> int:
    indices = [int(key) for key in mapping if isinstance(key, str) and key.isdigit()]
    return max(indices) + 1 if indices else 0


class Context:
    """Mutable carrier of result, messages, suggestions and deferred work.

    Mutators return ``self`` so calls chain:

        ctx.set_result(["a"]).set_success("done").set_pause()
    """

    def __init__(
        self,
        result: Any = None,
        info: Iterable[str] | None = None,
        error: Iterable[str] | None = None,
        success: Iterable[str] | None = None,
        warning: Iterable[str] | None = None,
        next_variants: Mapping[str, str] | None = None,
        next_command: str | None = None,
        pause: bool | str = False,
        processes: Iterable[dict[str, Any]] | None = None,
        tabs: Mapping[str, Tab] | None = None,
        active_tab: str | None = None,
    ) -> None:
        self._result = result
        self._info = _as_messages(info)
        self._error = _as_messages(error)
        self._success = _as_messages(success)
        self._warning = _as_messages(warning)
        self._next_variants: dict[str, str] = dict(next_variants or {})
        self._next_command = next_command
        self._pause: bool | str = pause
        self._processes: list[dict[str, Any]] = [dict(p) for p in processes or []]
        self._tabs: dict[str, Tab] = dict(tabs or {})
        self._active_tab = active_tab

        self._on_change: OnChange | None = None
        self._registry: HandlerRegistry | None = None

    def attach(
        self,
        on_change: OnChange | None = None,
        registry: HandlerRegistry | None = None,
    ) -> Context:
        """Bind the on-change hook and the handler registry used by process()."""
        if on_change is not None:
            self._on_change = on_change
        if registry is not None:
            self._registry = registry
        return self

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    # -- Read access ---------------------------------------------------------

    @property
    def result(self) -> Any:
        return self._result

    @property
    def info(self) -> list[str]:
        return list(self._info)

    @property
    def error(self) -> list[str]:
        return list(self._error)

    @property
    def success(self) -> list[str]:
        return list(self._success)

    @property
    def warning(self) -> list[str]:
        return list(self._warning)

    @property
    def next_variants(self) -> dict[str, str]:
        return dict(self._next_variants)

    @property
    def next_command(self) -> str | None:
        return self._next_command

    @property
    def pause(self) -> bool | str:
        return self._pause

    @property
    def processes(self) -> list[dict[str, Any]]:
        return [dict(p) for p in self._processes]

    @property
    def tabs(self) -> dict[str, Tab]:
        return dict(self._tabs)

    @property
    def active_tab(self) -> str | None:
        return self._active_tab

    @property
    def registry(self) -> HandlerRegistry | None:
        return self._registry

    def is_ok(self) -> bool:
        return not self._error

    def get_error(self) -> str | None:
        """Return all error messages joined by newlines, or None when ok."""
        if self.is_ok():
            return None
        return "\n".join(self._error)

    # -- Mutators ------------------------------------------------------------

    def set_result(self, value: Any, append: bool = False) -> Context:
        """Replace the result, or deep-union value into it when append is set.

        Appending a mapping writes each key as a dot path, deep-unioning when
        both the existing and the new value are mappings. Appending a list
        extends a list result positionally (or adds numbered keys to a mapping
        result). Scalars always replace.
        """
        if append and isinstance(value, Mapping):
            self._append_mapping(value)
        elif append and isinstance(value, (list, tuple)):
            self._append_sequence(value)
        else:
            self._result = value
        self._emit()
        return self

    def _append_mapping(self, value: Mapping[str, Any]) -> None:
        if isinstance(self._result, list):
            self._result.append(dict(value))
            return
        if not isinstance(self._result, dict):
            self._result = {}
        for key, item in value.items():
            data_set(self._result, str(key), copy.deepcopy(item), merge=True)

    def _append_sequence(self, value: Iterable[Any]) -> None:
        items = [copy.deepcopy(item) for item in value]
        if isinstance(self._result, dict):
            index = _next_index(self._result)
            for item in items:
                self._result[str(index)] = item
                index += 1
            return
        if not isinstance(self._result, list):
            self._result = []
        self._result.extend(items)

    def _set_messages(self, name: str, value: str | Iterable[str] | None, append: bool) -> Context:
        messages = _as_messages(value)
        current: list[str] = getattr(self, f"_{name}")
        setattr(self, f"_{name}", current + messages if append else messages)
        self._emit()
        return self

    def set_info(self, value: str | Iterable[str] | None, append: bool = False) -> Context:
        return self._set_messages("info", value, append)

    def set_error(self, value: str | Iterable[str] | None, append: bool = False) -> Context:
        return self._set_messages("error", value, append)

    def set_success(self, value: str | Iterable[str] | None, append: bool = False) -> Context:
        return self._set_messages("success", value, append)

    def set_warning(self, value: str | Iterable[str] | None, append: bool = False) -> Context:
        return self._set_messages("warning", value, append)

    def set_next_variants(
        self, value: str | Mapping[str, str] | None, append: bool = False
    ) -> Context:
        """Set command suggestions (command string -> label)."""
        if isinstance(value, str):
            value = {value: value}
        variants = dict(value or {})
        self._next_variants = {**self._next_variants, **variants} if append else variants
        self._emit()
        return self

    def set_next_command(self, value: str | None, argument: str | None = None) -> Context:
        """Set the prompt prefill, joining an optional argument with a space."""
        self._next_command = value
        if value and argument:
            self._next_command = f"{value} {argument}"
        self._emit()
        return self

    def set_pause(self, value: bool | str = True) -> Context:
        self._pause = value
        self._emit()
        return self

    def process(self, name: str, handler_class: Any, handler_method: str, *args: Any) -> Context:
        """Register deferred work to run after the current turn.

        Args:
            name: Label for the deferred work.
            handler_class: Registered handler name, or a Handler class/instance.
            handler_method: Method on the handler to invoke.
            *args: Positional arguments for the method.

        Raises:
            HandlerConfigError: If the handler is not registered or lacks the method.
        """
        handler_name = handler_class if isinstance(handler_class, str) else getattr(
            handler_class, "name", None
        )
        if self._registry is None:
            raise HandlerConfigError(
                f"Handler {handler_name} cannot be validated: no registry attached."
            )
        handler = self._registry.get(handler_name) if handler_name else None
        if handler is None:
            raise HandlerConfigError(f"Handler {handler_class} does not exist or is not registered.")
        if not callable(getattr(handler, handler_method, None)):
            raise HandlerConfigError(
                f"Method {handler_method} does not exist in handler {handler_name}."
            )

        self._processes.append(
            {
                "name": name,
                "handler_class": handler_name,
                "handler_method": handler_method,
                "args": list(args),
            }
        )
        self._emit()
        return self

    def take_processes(self) -> list[dict[str, Any]]:
        """Drain and return the deferred-work queue."""
        drained, self._processes = self._processes, []
        if drained:
            self._emit()
        return drained

    def set_tabs(self, value: Mapping[str, Tab] | None, append: bool = False) -> Context:
        tabs = dict(value or {})
        self._tabs = {**self._tabs, **tabs} if append else tabs
        self._emit()
        return self

    def set_active_tab(self, tab_id: str | None) -> Context:
        self._active_tab = tab_id
        self._emit()
        return self

    def ensure_main_tab(self) -> Context:
        """Create and activate the Main tab if no tab named Main exists."""
        if any(tab.name == MAIN_TAB_NAME for tab in self._tabs.values()):
            return self
        main = Tab(id=MAIN_TAB_ID, name=MAIN_TAB_NAME, type=TabType.MAIN, state=TabState.ACTIVE)
        self.set_tabs({MAIN_TAB_ID: main, **self._tabs})
        self.set_active_tab(MAIN_TAB_ID)
        return self

    def clear_meta(self) -> Context:
        """Drop messages, suggestions, pause and tabs. Result and processes stay."""
        for name in _MESSAGE_FIELDS:
            setattr(self, f"_{name}", [])
        self._next_variants = {}
        self._next_command = None
        self._pause = False
        self._tabs = {}
        self._active_tab = None
        self._emit()
        return self

    # -- Merging -------------------------------------------------------------

    def merge(
        self,
        other: Context | None,
        *,
        result: bool = True,
        info: bool = True,
        error: bool = True,
        success: bool = True,
        warning: bool = True,
        next: bool = True,
        pause: bool = True,
        processes: bool = True,
        tabs: bool = True,
    ) -> Context:
        """Merge selected fields of other into this context.

        Appendable fields use their append rule. Pause is copied only when
        the other's pause is set. Processes are re-registered (and
        re-validated) one at a time.
        """
        if other is None:
            return self

        if result and not _is_empty(other._result):
            self.set_result(copy.deepcopy(other._result), append=True)
        if info and other._info:
            self.set_info(other._info, append=True)
        if error and other._error:
            self.set_error(other._error, append=True)
        if success and other._success:
            self.set_success(other._success, append=True)
        if warning and other._warning:
            self.set_warning(other._warning, append=True)
        if next and other._next_variants:
            self.set_next_variants(other._next_variants, append=True)
        if pause and other._pause is not False:
            self.set_pause(other._pause)
        if processes:
            for descriptor in other._processes:
                self.process(
                    descriptor["name"],
                    descriptor["handler_class"],
                    descriptor["handler_method"],
                    *descriptor.get("args", []),
                )
        if tabs and other._tabs:
            self.set_tabs(copy.deepcopy(other._tabs), append=True)

        return self

    def merge_general(
        self,
        other: Context | None,
        result: bool = True,
        processes: bool = True,
        tabs: bool = False,
    ) -> Context:
        """Merge only result and deferred work (and optionally tabs)."""
        return self.merge(
            other,
            result=result,
            info=False,
            error=False,
            success=False,
            warning=False,
            next=False,
            pause=False,
            processes=processes,
            tabs=tabs,
        )

    # -- Copies --------------------------------------------------------------

    def copy(self) -> Context:
        """Deep copy, detached from the on-change hook but sharing the registry."""
        clone = Context.from_dict(copy.deepcopy(self.to_dict()))
        clone._registry = self._registry
        return clone

    def blank(self) -> Context:
        """Empty context sharing the registry binding."""
        empty = Context()
        empty._registry = self._registry
        return empty

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self._result,
            "info": list(self._info),
            "error": list(self._error),
            "success": list(self._success),
            "warning": list(self._warning),
            "next_variants": dict(self._next_variants),
            "next_command": self._next_command,
            "pause": self._pause,
            "processes": [dict(p) for p in self._processes],
            "tabs": {tab_id: tab.to_dict() for tab_id, tab in self._tabs.items()},
            "active_tab": self._active_tab,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Context:
        tabs = data.get("tabs") or {}
        return cls(
            result=data.get("result"),
            info=data.get("info"),
            error=data.get("error"),
            success=data.get("success"),
            warning=data.get("warning"),
            next_variants=data.get("next_variants"),
            next_command=data.get("next_command"),
            pause=data.get("pause", False),
            processes=data.get("processes"),
            tabs={tab_id: Tab.from_dict(tab) for tab_id, tab in tabs.items()},
            active_tab=data.get("active_tab"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"Context(result={self._result!r}, errors={len(self._error)}, "
            f"processes={len(self._processes)}, active_tab={self._active_tab!r})"
        )
