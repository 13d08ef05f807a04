# chartstore/runtime/instance.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Mapping, Optional

from chartstore.core.definition import FsmDefinition, TransitionOptions
from chartstore.core.events import FsmEvent
from chartstore.interfaces.protocols import StatechartEngine
from chartstore.runtime.scheduler import DelayedEventScheduler


@dataclass(frozen=True)
class RuntimeInstance:
    """
    A definition bound to a live scheduler, the engine driving it and the
    options it runs with. This is what routers bind into the events they
    claim, so the transition handler needs nothing but the event and the
    persisted state.
    """

    definition: FsmDefinition
    scheduler: DelayedEventScheduler
    engine: StatechartEngine
    options: TransitionOptions

    @property
    def fsm_id(self) -> Hashable:
        return self.definition.id

    @property
    def open(self) -> bool:
        return self.definition.open

    def initialize(self, epoch: int, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Initial state for an envelope created under `epoch`."""
        with self.scheduler.tagging(epoch):
            return self.engine.initialize(self.definition, args, scheduler=self.scheduler)

    def transition(self, state: Any, event: FsmEvent, epoch: int) -> Any:
        """Next state of an envelope held under `epoch`; timers set on the way carry that epoch."""
        with self.scheduler.tagging(epoch):
            return self.engine.transition(self.definition, state, event, self.options, scheduler=self.scheduler)
