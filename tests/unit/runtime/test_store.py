# tests/unit/runtime/test_store.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging

import pytest

from chartstore.core.errors import DispatchError
from chartstore.core.events import Event
from chartstore.runtime.interceptors import Interceptor
from chartstore.runtime.store import AppStore, Context


def test_initial_db_is_copied():
    initial = {"a": 1}
    store = AppStore(initial)
    initial["a"] = 2
    assert store.db == {"a": 1}


def test_reg_event_db(store):
    store.reg_event_db("inc", lambda db, e: {**db, "n": db.get("n", 0) + e.data})
    store.dispatch(Event("inc", 2))
    store.dispatch(Event("inc", 3))
    assert store.db == {"n": 5}
    assert store.has_handler("inc")


def test_reg_event_fx_dispatches_follow_ups(store):
    store.reg_event_fx("first", lambda ctx: {"db": {"first": True}, "dispatch": [Event("second")]})
    store.reg_event_db("second", lambda db, e: {**db, "second": True})
    store.dispatch(Event("first"))
    assert store.db == {"first": True, "second": True}


def test_clear_event(store, caplog):
    store.reg_event_db("x", lambda db, e: {"x": 1})
    store.clear_event("x")
    assert not store.has_handler("x")
    with caplog.at_level(logging.WARNING, logger="chartstore.runtime.store"):
        store.dispatch(Event("x"))
    assert store.db == {}
    assert "No handler registered for x" in caplog.text


def test_nested_dispatch_is_queued(store):
    order = []

    def outer(db, e):
        store.dispatch(Event("inner"))
        order.append("outer")
        return db

    def inner(db, e):
        order.append("inner")
        return db

    store.reg_event_db("outer", outer)
    store.reg_event_db("inner", inner)
    store.dispatch(Event("outer"))
    assert order == ["outer", "inner"]


def test_dispatch_sync_inside_handler_fails(store):
    store.reg_event_db("outer", lambda db, e: store.dispatch_sync(Event("inner")))
    with pytest.raises(DispatchError):
        store.dispatch(Event("outer"))


def test_dispatch_sync_runs_immediately(store):
    store.reg_event_db("set", lambda db, e: {"v": e.data})
    store.dispatch_sync(Event("set", 7))
    assert store.db == {"v": 7}


def test_handler_failure_purges_queue(store):
    seen = []

    def failing(db, e):
        store.dispatch(Event("never"))
        raise RuntimeError("boom")

    store.reg_event_db("fail", failing)
    store.reg_event_db("never", lambda db, e: seen.append(e) or db)
    with pytest.raises(RuntimeError):
        store.dispatch(Event("fail"))
    assert seen == []
    # the store keeps working
    store.dispatch(Event("never"))
    assert len(seen) == 1


# -----------------------------------------------------------------------------
# INTERCEPTORS
# -----------------------------------------------------------------------------


def test_interceptor_order(store):
    trail = []

    def tracer(name):
        def before(ctx):
            trail.append(f"before {name}")
            return ctx

        def after(ctx):
            trail.append(f"after {name}")
            return ctx

        return Interceptor(name, before=before, after=after)

    store.interceptors.register("a", tracer("a"))
    store.interceptors.register("b", tracer("b"))
    store.reg_event_db("e", lambda db, e: trail.append("handler") or db)
    store.dispatch(Event("e"))
    assert trail == ["before a", "before b", "handler", "after b", "after a"]


def test_before_hook_rewrites_event(store):
    store.interceptors.register(
        "rewrite", Interceptor("rewrite", before=lambda ctx: ctx.with_event(Event(ctx.event.kind, 42)))
    )
    store.reg_event_db("e", lambda db, e: {"data": e.data})
    store.dispatch(Event("e", 1))
    assert store.db == {"data": 42}


def test_after_hook_sees_handler_db(store):
    def after(ctx):
        ctx.effects["db"] = {**ctx.effective_db, "after": True}
        return ctx

    store.interceptors.register("after", Interceptor("after", after=after))
    store.reg_event_db("e", lambda db, e: {**db, "handler": True})
    store.dispatch(Event("e"))
    assert store.db == {"handler": True, "after": True}


def test_global_chain_runs_without_handler(store, caplog):
    seen = []
    store.interceptors.register("spy", Interceptor("spy", after=lambda ctx: seen.append(ctx.event.kind) or ctx))
    with caplog.at_level(logging.WARNING, logger="chartstore.runtime.store"):
        store.dispatch(Event("unhandled"))
    assert seen == ["unhandled"]
    assert "No handler registered" not in caplog.text


def test_context_effective_db():
    ctx = Context(event=None, db={"a": 1})
    assert ctx.effective_db == {"a": 1}
    ctx.effects["db"] = {"a": 2}
    assert ctx.effective_db == {"a": 2}
    assert ctx.db == {"a": 1}
