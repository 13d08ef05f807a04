# tests/unit/runtime/test_adapters.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from collections import namedtuple

import pytest

from chartstore.runtime.adapters import AdapterTable, MappingStateAdapter, PathStateAdapter


def test_mapping_adapter_roundtrip():
    adapter = MappingStateAdapter()
    db = {"other": 1}
    updated = adapter.set_state(db, "editor", "ENV")
    assert adapter.get_state(updated, "editor") == "ENV"
    assert updated == {"other": 1, "fsm": {"editor": "ENV"}}
    # copy on write
    assert db == {"other": 1}


def test_mapping_adapter_remove():
    adapter = MappingStateAdapter(root="machines")
    db = adapter.set_state({}, "a", 1)
    db = adapter.set_state(db, "b", 2)
    db = adapter.set_state(db, "a", None)
    assert db == {"machines": {"b": 2}}
    assert adapter.get_state(db, "a") is None


def test_mapping_adapter_remove_absent_returns_same_db():
    db = {"x": 1}
    assert MappingStateAdapter().set_state(db, "a", None) is db


def test_path_adapter_nested():
    adapter = PathStateAdapter()
    db = adapter.set_state({"users": {7: {"name": "ada"}}}, ("users", 7, "signup"), "ENV")
    assert db == {"users": {7: {"name": "ada", "signup": "ENV"}}}
    assert adapter.get_state(db, ("users", 7, "signup")) == "ENV"
    assert adapter.get_state(db, ("users", 8, "signup")) is None


def test_path_adapter_remove_prunes_empty_parents():
    adapter = PathStateAdapter()
    db = adapter.set_state({"keep": 1}, ("a", "b", "c"), "ENV")
    db = adapter.set_state(db, ("a", "b", "c"), None)
    assert db == {"keep": 1}


def test_path_adapter_remove_absent_returns_same_db():
    db = {"a": {"b": 1}}
    assert PathStateAdapter().set_state(db, ("a", "x"), None) is db


def test_path_adapter_rejects_empty_path():
    with pytest.raises(ValueError):
        PathStateAdapter().set_state({}, (), "ENV")


def test_table_resolves_by_type():
    table = AdapterTable.with_paths()
    db = table.set_state({}, "flat", 1)
    db = table.set_state(db, ("nested", "id"), 2)
    assert db == {"fsm": {"flat": 1}, "nested": {"id": 2}}
    assert table.get_state(db, "flat") == 1
    assert table.get_state(db, ("nested", "id")) == 2


def test_table_walks_mro():
    Key = namedtuple("Key", "kind name")
    table = AdapterTable.with_paths()
    assert isinstance(table.resolve(Key("forms", "signup")), PathStateAdapter)
    assert table.resolve("flat") is table.default


def test_table_custom_default():
    default = MappingStateAdapter(root="machines")
    table = AdapterTable(default)
    table.register(int, MappingStateAdapter(root="numbered"))
    db = table.set_state({}, 3, "x")
    db = table.set_state(db, "s", "y")
    assert db == {"numbered": {3: "x"}, "machines": {"s": "y"}}
