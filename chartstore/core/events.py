# chartstore/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Event vocabulary of the dispatch pipeline.

Every pipeline event exposes a `kind`. Application events are plain `Event`
instances; the lifecycle and transition events are tagged variants with an
explicit payload each. `FsmEvent` is what the statechart engine sees.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, ClassVar, Hashable, Mapping, Optional, Tuple, Union

if TYPE_CHECKING:
    from chartstore.core.definition import FsmDefinition
    from chartstore.runtime.instance import RuntimeInstance

INIT = "fsm/init"
START = "fsm/start"
STOP = "fsm/stop"
RESTART = "fsm/restart"
TRANSITION = "fsm/transition"

# Lifecycle kinds are never fed to a machine as transitions.
RESERVED_KINDS = frozenset({INIT, START, STOP, RESTART})


@dataclass(frozen=True)
class FsmEvent:
    """
    An event as seen by the statechart engine.

    :param type: The event type matched against a node's declared transitions.
    :param data: Optional payload.
    :param more_data: Additional positional payload, in order.
    :param epoch: Epoch the event was scheduled under. Only delayed events carry one.
    """

    type: str
    data: Any = None
    more_data: Tuple[Any, ...] = ()
    epoch: Optional[int] = None

    @property
    def epoch_sensitive(self) -> bool:
        """True for scheduled events, which are subject to the staleness check."""
        return self.epoch is not None

    def tagged(self, epoch: int) -> "FsmEvent":
        return replace(self, epoch=epoch)

    def untagged(self) -> "FsmEvent":
        return replace(self, epoch=None) if self.epoch is not None else self


@dataclass(frozen=True)
class Event:
    """
    A generic application event.

    `fsm_id` and `epoch` are only set on delayed events re-injected by an
    open-mode scheduler; they name the instance that scheduled the event.
    """

    kind: str
    data: Any = None
    more_data: Tuple[Any, ...] = ()
    fsm_id: Optional[Hashable] = None
    epoch: Optional[int] = None

    def to_fsm_event(self) -> FsmEvent:
        return FsmEvent(type=self.kind, data=self.data, more_data=self.more_data, epoch=self.epoch)


@dataclass(frozen=True)
class InitEvent:
    """Create the initial state of a definition if none is persisted."""

    kind: ClassVar[str] = INIT
    definition: "FsmDefinition"
    args: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class StartEvent:
    """Initialize a definition and install its router."""

    kind: ClassVar[str] = START
    definition: "FsmDefinition"


@dataclass(frozen=True)
class StopEvent:
    """Drop the persisted state and the router of an instance."""

    kind: ClassVar[str] = STOP
    fsm_id: Hashable


@dataclass(frozen=True)
class RestartEvent:
    """
    Reset an instance to its initial state under a new epoch.

    `target` is either an instance id or a definition. A closed-mode router
    binds `instance` when the id is its own.
    """

    kind: ClassVar[str] = RESTART
    target: Union[Hashable, "FsmDefinition"]
    instance: Optional["RuntimeInstance"] = None

    @property
    def fsm_id(self) -> Hashable:
        return getattr(self.target, "id", self.target)

    def bind(self, instance: "RuntimeInstance") -> "RestartEvent":
        return replace(self, instance=instance)


@dataclass(frozen=True)
class TransitionEvent:
    """
    Addressed transition request for one instance.

    `fsm_event` is either an event type or a ready-made FsmEvent (scheduled
    events arrive that way, carrying their epoch). `instance` is bound by the
    closed-mode router of `fsm_id`; an unbound transition reached no live
    instance.
    """

    kind: ClassVar[str] = TRANSITION
    fsm_id: Hashable
    fsm_event: Union[str, FsmEvent]
    data: Any = None
    more_data: Tuple[Any, ...] = ()
    instance: Optional["RuntimeInstance"] = None

    @property
    def bound(self) -> bool:
        return self.instance is not None

    def bind(self, instance: "RuntimeInstance") -> "TransitionEvent":
        return replace(self, instance=instance)

    def to_fsm_event(self) -> FsmEvent:
        if isinstance(self.fsm_event, FsmEvent):
            return self.fsm_event
        return FsmEvent(type=self.fsm_event, data=self.data, more_data=self.more_data)


def transition(fsm_id: Hashable, fsm_event: Union[str, FsmEvent], data: Any = None, *more_data: Any) -> TransitionEvent:
    """
    Build a TransitionEvent. Extra positional arguments after `data` become
    `more_data`.
    """
    return TransitionEvent(fsm_id=fsm_id, fsm_event=fsm_event, data=data, more_data=tuple(more_data))
