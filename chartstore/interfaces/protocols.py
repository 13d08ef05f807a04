# chartstore/interfaces/protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

from chartstore.interfaces.types import Db, FsmId, NodeId


@runtime_checkable
class Scheduler(Protocol):
    """
    Delayed-event capability handed to the engine.

    Methods:
        schedule(event, delay_ms): Re-inject `event` after `delay_ms` milliseconds.
        unschedule(event): Cancel the pending timer for `event`, if any.

    Runtime Invariants:
    - At most one timer is pending per distinct event.
    """

    def schedule(self, event: Any, delay_ms: float) -> None: ...

    def unschedule(self, event: Any) -> None: ...


@runtime_checkable
class StatechartEngine(Protocol):
    """
    Statechart engine protocol. The runtime treats the engine as a black box of
    pure functions over (definition, state, event).

    Methods:
        initialize(): Compute the initial state of a definition.
        transition(): Compute the next state for an event.
        matches(): Check whether a state is in the given node.

    Runtime Invariants:
    - The returned state exposes the current node id as `value`.
    - The engine never reads or writes the envelope epoch.

    Error Handling:
    - An event with no transition from the current node raises
      UnknownEventError unless options.ignore_unknown_event is set.
    """

    def initialize(
        self, definition: Any, args: Optional[Mapping[str, Any]] = None, *, scheduler: Optional[Scheduler] = None
    ) -> Any:
        """Return the initial state for `definition`."""
        ...

    def transition(
        self, definition: Any, state: Any, event: Any, options: Any = None, *, scheduler: Optional[Scheduler] = None
    ) -> Any:
        """Return the state reached from `state` on `event`."""
        ...

    def matches(self, state: Any, node_id: NodeId) -> bool:
        """Return True if `state` is in `node_id`."""
        ...


@runtime_checkable
class StateStoreAdapter(Protocol):
    """
    Read/write access to the persisted envelope of one instance.

    Runtime Invariants:
    - set_state never mutates the db it receives; it returns a new one.
    - set_state with None removes the envelope.
    """

    def get_state(self, db: Db, fsm_id: FsmId) -> Any: ...

    def set_state(self, db: Db, fsm_id: FsmId, envelope: Any) -> Db: ...


@runtime_checkable
class Clock(Protocol):
    """
    Pluggable time source used by the delayed event scheduler.

    Methods:
        now(): Current time in milliseconds.
        call_later(delay_ms, callback): Arrange for callback() after delay_ms; return a handle.
        cancel(handle): Cancel a handle returned by call_later. Cancelling twice is harmless.
    """

    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...
