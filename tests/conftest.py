# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from chartstore.core.definition import FsmDefinition


@pytest.fixture
def clock():
    """A manual clock; time only moves when the test advances it."""
    from chartstore.runtime.scheduler import ManualClock

    return ManualClock()


@pytest.fixture
def epochs():
    """A private epoch tracker so tests never share epochs."""
    from chartstore.runtime.epochs import EpochTracker

    return EpochTracker()


@pytest.fixture
def store():
    """An empty store."""
    from chartstore.runtime.store import AppStore

    return AppStore()


@pytest.fixture
def hook():
    """A hook mock recording every lifecycle callback."""
    h = MagicMock()
    h.on_start = MagicMock()
    h.on_stop = MagicMock()
    h.on_restart = MagicMock()
    h.on_transition = MagicMock()
    h.on_discard = MagicMock()
    h.on_error = MagicMock()
    return h


@pytest.fixture
def controller(store, epochs, clock, hook):
    """A lifecycle controller wired to the manual clock and the hook mock."""
    from chartstore.runtime.lifecycle import LifecycleController

    return LifecycleController(store, epochs=epochs, clock=clock, hooks=[hook])


@pytest.fixture
def editor():
    """Document editor machine: clean -> editing -> dirty -> clean."""
    return FsmDefinition.from_mapping(
        {
            "id": "editor",
            "initial": "clean",
            "states": {
                "clean": {"on": {"edit-started": "editing"}},
                "editing": {"on": {"edit-finished": "dirty"}},
                "dirty": {"on": {"save": "clean", "edit-started": "editing"}},
            },
        }
    )


@pytest.fixture
def waiter():
    """Machine with a delayed transition: waiting times out after 1000ms."""
    return FsmDefinition.from_mapping(
        {
            "id": "waiter",
            "initial": "idle",
            "states": {
                "idle": {"on": {"go": "waiting"}},
                "waiting": {"after": {1000: "timed_out"}, "on": {"cancel": "idle"}},
                "timed_out": {"on": {"reset": "idle"}},
            },
        }
    )


@pytest.fixture
def scheduler_mock():
    """A scheduler mock for engine tests."""
    s = MagicMock()
    s.schedule = MagicMock()
    s.unschedule = MagicMock()
    return s
