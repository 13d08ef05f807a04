# chartstore/runtime/router.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Per-instance event routers.

A router is a global interceptor installed for one instance id. Closed
routers only claim transition/restart events addressed to their id and bind
the instance into them before the handler runs. Open routers treat every
non-lifecycle event as a candidate transition and apply it after the
handler ran.

Open mode runs the engine for every event in the system, not just those aimed
at the machine. Prefer closed mode unless the machine genuinely needs to react
to arbitrary application events.
"""

from __future__ import annotations

import logging
from typing import Any, Hashable, Optional, Tuple

from chartstore.core.definition import FsmDefinition, StateEnvelope
from chartstore.core.events import RESERVED_KINDS, Event, FsmEvent, RestartEvent, TransitionEvent
from chartstore.runtime.adapters import AdapterTable
from chartstore.runtime.epochs import EpochTracker, Staleness
from chartstore.runtime.hooks import HookManager
from chartstore.runtime.instance import RuntimeInstance
from chartstore.runtime.interceptors import Interceptor
from chartstore.runtime.store import Context

logger = logging.getLogger(__name__)


def router_key(fsm_id: Hashable) -> Tuple[str, Hashable]:
    """Registry key of the router owning `fsm_id`."""
    return ("chartstore/router", fsm_id)


class StalenessFilter:
    """
    Discards delayed events scheduled before the instance's latest
    init/restart. Events without an epoch (ordinary, synchronous transitions)
    always pass.
    """

    def __init__(self, hooks: Optional[HookManager] = None) -> None:
        self._hooks = hooks if hooks is not None else HookManager()

    def accept(self, fsm_id: Hashable, event: FsmEvent, envelope: StateEnvelope) -> bool:
        """
        :return: False if the event is stale and must not be applied.
        :raises EpochError: If the event is tagged with a future epoch.
        """
        if not event.epoch_sensitive:
            return True
        if EpochTracker.compare(event.epoch, envelope.epoch) is Staleness.CURRENT:
            return True
        logger.info(
            "Discarding stale delayed event %s for %s (scheduled in epoch %s, now %s)",
            event.type,
            fsm_id,
            event.epoch,
            envelope.epoch,
        )
        self._hooks.execute_on_discard(fsm_id, event, envelope)
        return False


class TransitionStep:
    """
    Applies one event to one envelope: staleness check, engine transition,
    hook notification. Shared by the closed transition handler and open routers.
    """

    def __init__(self, hooks: Optional[HookManager] = None) -> None:
        self._hooks = hooks if hooks is not None else HookManager()
        self._staleness = StalenessFilter(self._hooks)

    @property
    def staleness(self) -> StalenessFilter:
        return self._staleness

    def apply(self, instance: RuntimeInstance, envelope: StateEnvelope, event: FsmEvent) -> StateEnvelope:
        """
        :return: The next envelope, or `envelope` itself when nothing changed.
        """
        fsm_id = instance.fsm_id
        if not self._staleness.accept(fsm_id, event, envelope):
            return envelope
        try:
            state = instance.transition(envelope.current_state, event, envelope.epoch)
        except Exception as error:
            self._hooks.execute_on_error(fsm_id, error)
            raise
        if state is envelope.current_state or state == envelope.current_state:
            return envelope
        updated = envelope.advanced(state)
        logger.debug("%s: %s -> %s on %s", fsm_id, envelope.value, updated.value, event.type)
        self._hooks.execute_on_transition(fsm_id, envelope, updated, event)
        return updated


class ClosedRouter:
    """
    Before-hook router. Claims a TransitionEvent or RestartEvent iff it is
    addressed to this router's id and not bound yet, and binds the instance
    (definition, options, scheduler) into it.
    """

    def __init__(self, instance: RuntimeInstance) -> None:
        self._instance = instance

    @property
    def fsm_id(self) -> Hashable:
        return self._instance.fsm_id

    def interceptor(self) -> Interceptor:
        return Interceptor(id=router_key(self.fsm_id), before=self._before)

    def _before(self, context: Context) -> Context:
        event = context.event
        if isinstance(event, TransitionEvent):
            if event.bound or event.fsm_id != self.fsm_id:
                return context
        elif isinstance(event, RestartEvent):
            if event.instance is not None or isinstance(event.target, FsmDefinition) or event.target != self.fsm_id:
                return context
        else:
            return context
        return context.with_event(event.bind(self._instance))


class OpenRouter:
    """
    After-hook router. Every event except the lifecycle kinds is offered to the
    machine as a transition; unmatched events are ignored.

    The router reads its slice from the db the handler produced (or the turn's
    snapshot when the handler wrote nothing) and writes only its own slice on
    top of it, so a handler's write for the same event is never lost.
    """

    def __init__(self, instance: RuntimeInstance, adapters: AdapterTable, step: TransitionStep) -> None:
        self._instance = instance
        self._adapters = adapters
        self._step = step

    @property
    def fsm_id(self) -> Hashable:
        return self._instance.fsm_id

    def interceptor(self) -> Interceptor:
        return Interceptor(id=router_key(self.fsm_id), after=self._after)

    def _after(self, context: Context) -> Context:
        event = context.event
        if getattr(event, "kind", None) in RESERVED_KINDS:
            return context
        fsm_event = self._candidate(event)
        if fsm_event is None:
            return context

        db = context.effective_db
        envelope = self._adapters.get_state(db, self.fsm_id)
        if envelope is None:
            return context
        updated = self._step.apply(self._instance, envelope, fsm_event)
        if updated is not envelope:
            context.effects["db"] = self._adapters.set_state(db, self.fsm_id, updated)
        return context

    def _candidate(self, event: Any) -> Optional[FsmEvent]:
        if isinstance(event, TransitionEvent):
            return event.to_fsm_event() if event.fsm_id == self.fsm_id else None
        if isinstance(event, Event):
            # Delayed events re-injected by another open instance.
            if event.fsm_id is not None and event.fsm_id != self.fsm_id:
                return None
            return event.to_fsm_event()
        kind = getattr(event, "kind", None)
        return FsmEvent(type=kind) if isinstance(kind, str) else None
