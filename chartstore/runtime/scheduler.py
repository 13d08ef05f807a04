# chartstore/runtime/scheduler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Delayed event scheduling.

Architecture:
- Clocks own the timers (wall clock threads, asyncio loop, or a manual clock)
- DelayedEventScheduler tracks one pending timer per event for one instance
- Fired timers re-enter the store through dispatch as brand-new events,
  tagged with the epoch of the state that scheduled them
"""

from __future__ import annotations

import asyncio
import heapq
import logging
import threading
import time
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterator, List, Optional, Tuple, Union

from chartstore.core.events import Event, FsmEvent, TransitionEvent
from chartstore.interfaces.protocols import Clock
from chartstore.interfaces.types import Dispatch

logger = logging.getLogger(__name__)


class WallClock:
    """Real time. Timers run on daemon `threading.Timer` threads."""

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay_ms, 0) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()


class AsyncioClock:
    """
    Event loop time. Timers are `loop.call_later` handles, so callbacks run on
    the loop thread; schedule from that thread only.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0) / 1000.0, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class _ManualTimer:
    """Handle returned by ManualClock.call_later."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False


class ManualClock:
    """
    Deterministic clock for tests and simulations. Time only moves when
    `advance` is called; due callbacks then run on the calling thread in due
    order (ties in scheduling order), including callbacks scheduled while
    advancing.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: List[Tuple[float, int, _ManualTimer]] = []
        self._seq = 0
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _ManualTimer:
        with self._lock:
            timer = _ManualTimer(self._now + max(delay_ms, 0), callback)
            heapq.heappush(self._heap, (timer.due, self._seq, timer))
            self._seq += 1
            return timer

    def cancel(self, handle: _ManualTimer) -> None:
        handle.cancelled = True

    def advance(self, delay_ms: float) -> int:
        """
        Move time forward by `delay_ms`, firing every timer that falls due.

        Returns:
            Number of callbacks run.
        """
        target = self._now + delay_ms
        fired = 0
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > target:
                    break
                due, _, timer = heapq.heappop(self._heap)
            self._now = max(self._now, due)
            if not timer.cancelled:
                timer.callback()
                fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        """Number of timers not yet fired or cancelled."""
        with self._lock:
            return sum(1 for _, _, timer in self._heap if not timer.cancelled)


class _TimerEntry:
    """A pending timer: the tagged event it will deliver and the clock handle."""

    def __init__(self, event: FsmEvent) -> None:
        self.event = event
        self.handle: Any = None


class DelayedEventScheduler:
    """Schedules and cancels delayed events for one instance.

    The statechart engine calls `schedule` when a node with delayed
    transitions is entered and `unschedule` when it is left. When a timer
    fires, its event is dispatched back into the store: addressed as a
    TransitionEvent in closed mode, or as a plain Event naming this instance
    in open mode.

    Class Invariants:
    1. At most one pending timer per distinct (untagged) event
    2. A cancelled or replaced timer never dispatches, even if its clock
       callback still runs
    3. Events are tagged with the epoch of the envelope being transitioned,
       bound through `tagging` for the duration of one engine call
    """

    def __init__(
        self,
        fsm_id: Hashable,
        dispatch: Dispatch,
        clock: Clock,
        open_mode: bool = False,
    ) -> None:
        """Initialize a scheduler bound to one instance.

        Args:
            fsm_id: Id of the owning instance
            dispatch: Store entry point used to re-inject fired events
            clock: Time source owning the timers
            open_mode: Re-inject as plain events instead of addressed transitions
        """
        self._fsm_id = fsm_id
        self._dispatch = dispatch
        self._epoch = 0
        self._clock = clock
        self.open_mode = open_mode
        self._timers: Dict[FsmEvent, _TimerEntry] = {}
        self._lock = threading.Lock()

    @property
    def fsm_id(self) -> Hashable:
        return self._fsm_id

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def pending(self) -> FrozenSet[FsmEvent]:
        """Untagged events with a pending timer."""
        with self._lock:
            return frozenset(self._timers)

    @property
    def epoch(self) -> int:
        """Epoch new timers are tagged with."""
        return self._epoch

    def now(self) -> float:
        return self._clock.now()

    @contextmanager
    def tagging(self, epoch: int) -> Iterator["DelayedEventScheduler"]:
        """Tag timers scheduled inside the block with `epoch`.

        Args:
            epoch: Epoch of the envelope the engine is computing a state for
        """
        previous = self._epoch
        self._epoch = epoch
        try:
            yield self
        finally:
            self._epoch = previous

    def schedule(self, event: Union[str, FsmEvent], delay_ms: float) -> None:
        """Start a timer delivering `event` after `delay_ms` milliseconds.

        A timer already pending for the same event is cancelled first.

        Args:
            event: Event (or event type) to deliver; must be hashable
            delay_ms: Delay in milliseconds
        """
        key = _key(event)
        tagged = key.tagged(self._epoch)
        with self._lock:
            self._cancel_locked(key)
            entry = _TimerEntry(tagged)
            entry.handle = self._clock.call_later(delay_ms, partial(self._fire, key, entry))
            self._timers[key] = entry
        logger.debug("Scheduled %s for %s in %sms (epoch %s)", key.type, self._fsm_id, delay_ms, tagged.epoch)

    def unschedule(self, event: Union[str, FsmEvent]) -> None:
        """Cancel the pending timer for `event`. No-op if there is none."""
        with self._lock:
            self._cancel_locked(_key(event))

    def cancel_all(self) -> None:
        """Cancel every pending timer of this instance."""
        with self._lock:
            for key in list(self._timers):
                self._cancel_locked(key)

    def _cancel_locked(self, key: FsmEvent) -> None:
        entry = self._timers.pop(key, None)
        if entry is not None:
            self._clock.cancel(entry.handle)

    def _fire(self, key: FsmEvent, entry: _TimerEntry) -> None:
        with self._lock:
            if self._timers.get(key) is not entry:
                return
            del self._timers[key]
        logger.debug("Delayed event %s fired for %s", key.type, self._fsm_id)
        try:
            self._dispatch(self._wrap(entry.event))
        except Exception:
            logger.exception("Dispatching delayed event %s for %s failed", key.type, self._fsm_id)
            raise

    def _wrap(self, event: FsmEvent) -> Any:
        if self.open_mode:
            return Event(
                kind=event.type, data=event.data, more_data=event.more_data, fsm_id=self._fsm_id, epoch=event.epoch
            )
        return TransitionEvent(fsm_id=self._fsm_id, fsm_event=event)


def _key(event: Union[str, FsmEvent]) -> FsmEvent:
    if isinstance(event, str):
        return FsmEvent(type=event)
    return event.untagged()
