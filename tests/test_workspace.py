"""Tests for dot-path helpers and the persisted workspace."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from agentlab.context.dotpath import data_forget, data_get, data_set, deep_union, dots, has_path
from agentlab.workspace import Workspace


class TestDotPath:
    def test_get_nested(self):
        data = {"a": {"b": [10, {"c": "x"}]}}
        assert data_get(data, "a.b.0") == 10
        assert data_get(data, "a.b.1.c") == "x"
        assert data_get(data, "a.z", "dflt") == "dflt"
        assert data_get(data, "") is data

    def test_has_path_with_none_value(self):
        data = {"a": None}
        assert has_path(data, "a")
        assert not has_path(data, "b")

    def test_set_creates_intermediates(self):
        data: dict = {}
        data_set(data, "a.b.c", 1)
        assert data == {"a": {"b": {"c": 1}}}

    def test_set_list_index_and_append(self):
        data = {"items": ["x"]}
        data_set(data, "items.0", "y")
        data_set(data, "items.1", "z")
        assert data == {"items": ["y", "z"]}

    def test_set_list_index_out_of_range(self):
        with pytest.raises(KeyError):
            data_set({"items": []}, "items.5", "z")

    def test_set_merge_deep_unions(self):
        data = {"a": {"x": 1, "y": {"z": 2}}}
        data_set(data, "a", {"y": {"w": 3}}, merge=True)
        assert data == {"a": {"x": 1, "y": {"z": 2, "w": 3}}}

    def test_forget(self):
        data = {"a": {"b": 1, "c": 2}, "l": [1, 2]}
        data_forget(data, "a.b")
        data_forget(data, "l.0")
        data_forget(data, "missing.path")
        assert data == {"a": {"c": 2}, "l": [2]}

    def test_deep_union_replaces_lists(self):
        assert deep_union({"a": [1], "b": {"c": 1}}, {"a": [2], "b": {"d": 2}}) == {
            "a": [2],
            "b": {"c": 1, "d": 2},
        }

    def test_dots(self):
        assert dots({"a": {"b": 1, "e": {}}, "l": ["x"]}) == {"a.b": 1, "a.e": {}, "l.0": "x"}


class TestWorkspace:
    def test_set_get_persist(self, tmp_path: Path):
        path = tmp_path / "workspace.json"
        ws = Workspace(path)
        ws.set("user.name", "ada")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"variables": {"user": {"name": "ada"}}, "states": {}}

        reloaded = Workspace(path)
        assert reloaded.get("user.name") == "ada"
        assert reloaded.has("user")

    def test_forget(self, tmp_path: Path):
        ws = Workspace(tmp_path / "workspace.json")
        ws.set("a", 1)
        ws.forget("a")
        assert not ws.has("a")
        assert Workspace(ws.path).variables == {}

    def test_load_skips_type_mismatch(self, tmp_path: Path):
        path = tmp_path / "workspace.json"
        path.write_text(json.dumps({"variables": [1, 2], "states": {"s": 1}}))
        ws = Workspace(path)
        assert ws.variables == {}
        assert ws.states == {"s": 1}

    def test_corrupt_file_ignored(self, tmp_path: Path):
        path = tmp_path / "workspace.json"
        path.write_text("{broken")
        assert Workspace(path).variables == {}

    def test_autoload_off(self, tmp_path: Path):
        path = tmp_path / "workspace.json"
        Workspace(path).set("x", 1)
        assert Workspace(path, autoload=False).variables == {}

    def test_save_failure_returns_false(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        ws = Workspace(blocker / "workspace.json", autoload=False)
        assert ws.save() is False

    def test_dots(self, tmp_path: Path):
        ws = Workspace(tmp_path / "workspace.json")
        ws.set("a.b", 1)
        ws.set("c", [1])
        assert ws.dots() == {"a.b": 1, "c.0": 1}
