# tests/unit/runtime/test_scheduler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import logging
import threading
from unittest.mock import MagicMock

import pytest

from chartstore.core.events import Event, FsmEvent, TransitionEvent
from chartstore.runtime.scheduler import DelayedEventScheduler, ManualClock, WallClock


@pytest.fixture
def dispatch():
    return MagicMock()


@pytest.fixture
def scheduler(dispatch, clock):
    return DelayedEventScheduler("m", dispatch, clock)


# -----------------------------------------------------------------------------
# MANUAL CLOCK
# -----------------------------------------------------------------------------


def test_manual_clock_fires_in_due_order():
    clock = ManualClock()
    fired = []
    clock.call_later(20, lambda: fired.append("b"))
    clock.call_later(10, lambda: fired.append("a"))
    clock.call_later(20, lambda: fired.append("c"))
    assert clock.pending == 3
    assert clock.advance(15) == 1
    assert fired == ["a"]
    assert clock.now() == 15
    assert clock.advance(5) == 2
    assert fired == ["a", "b", "c"]


def test_manual_clock_cancel():
    clock = ManualClock()
    fired = []
    handle = clock.call_later(10, lambda: fired.append("x"))
    clock.cancel(handle)
    assert clock.pending == 0
    assert clock.advance(10) == 0
    assert fired == []


def test_manual_clock_runs_timers_added_while_advancing():
    clock = ManualClock()
    fired = []
    clock.call_later(10, lambda: clock.call_later(5, lambda: fired.append("nested")))
    assert clock.advance(20) == 2
    assert fired == ["nested"]


# -----------------------------------------------------------------------------
# DELAYED EVENT SCHEDULER
# -----------------------------------------------------------------------------


def test_fired_event_is_addressed_and_tagged(scheduler, dispatch, clock):
    with scheduler.tagging(1):
        scheduler.schedule("tick", 100)
    assert scheduler.pending == {FsmEvent("tick")}
    clock.advance(99)
    dispatch.assert_not_called()
    clock.advance(1)
    dispatch.assert_called_once_with(TransitionEvent(fsm_id="m", fsm_event=FsmEvent("tick", epoch=1)))
    assert scheduler.pending == frozenset()


def test_epoch_captured_at_scheduling_time(scheduler, dispatch, clock):
    with scheduler.tagging(3):
        scheduler.schedule("tick", 100)
    assert scheduler.epoch == 0
    clock.advance(100)
    fired = dispatch.call_args[0][0]
    assert fired.to_fsm_event().epoch == 3


def test_tagging_scopes_nest(scheduler):
    with scheduler.tagging(2):
        with scheduler.tagging(5):
            assert scheduler.epoch == 5
        assert scheduler.epoch == 2
    assert scheduler.epoch == 0


def test_unschedule_prevents_dispatch(scheduler, dispatch, clock):
    scheduler.schedule("tick", 100)
    scheduler.unschedule("tick")
    scheduler.unschedule("never-scheduled")
    clock.advance(200)
    dispatch.assert_not_called()


def test_rescheduling_replaces_pending_timer(scheduler, dispatch, clock):
    scheduler.schedule("tick", 100)
    scheduler.schedule("tick", 300)
    clock.advance(200)
    dispatch.assert_not_called()
    clock.advance(100)
    assert dispatch.call_count == 1


def test_cancel_all(scheduler, dispatch, clock):
    scheduler.schedule("a", 10)
    scheduler.schedule(FsmEvent("b", data=("x", 1)), 20)
    scheduler.cancel_all()
    assert clock.pending == 0
    clock.advance(100)
    dispatch.assert_not_called()


def test_open_mode_dispatches_plain_event(dispatch, clock):
    s = DelayedEventScheduler("m", dispatch, clock, open_mode=True)
    with s.tagging(1):
        s.schedule(FsmEvent("tick", data=5), 10)
    clock.advance(10)
    dispatch.assert_called_once_with(Event(kind="tick", data=5, fsm_id="m", epoch=1))


def test_now_uses_clock(scheduler, clock):
    clock.advance(42)
    assert scheduler.now() == 42
    assert scheduler.clock is clock


def test_wall_clock_timer_fires():
    clock = WallClock()
    fired = threading.Event()
    clock.call_later(10, fired.set)
    assert fired.wait(timeout=2.0)


def test_wall_clock_cancel():
    clock = WallClock()
    fired = threading.Event()
    handle = clock.call_later(200, fired.set)
    clock.cancel(handle)
    assert not fired.wait(timeout=0.4)


def test_dispatch_failure_on_timer_is_logged(clock, caplog):
    dispatch = MagicMock(side_effect=RuntimeError("store rejected"))
    s = DelayedEventScheduler("m", dispatch, clock)
    s.schedule("tick", 10)
    with caplog.at_level(logging.ERROR, logger="chartstore.runtime.scheduler"):
        with pytest.raises(RuntimeError):
            clock.advance(10)
    assert "Dispatching delayed event tick for m failed" in caplog.text
    assert "store rejected" in caplog.text
