# chartstore/core/engine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Reference statechart engine for flat machines.

Node spec format::

    {
        "on": {"edit-started": "editing",
               "save": {"target": "clean", "guard": can_save, "actions": [store]}},
        "after": {1000: "timed-out"},
        "entry": [action, ...],
        "exit": [action, ...],
    }

Actions are ``fn(context, event) -> new_context | None`` and guards
``fn(context, event) -> bool``. A transition whose target is None is internal.
Entering a node with ``after`` schedules one delayed ``AFTER`` event per delay
on the scheduler; leaving it unschedules them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from chartstore.core.definition import FsmDefinition, MachineState, TransitionOptions
from chartstore.core.errors import DefinitionError, TransitionError, UnknownEventError
from chartstore.core.events import INIT, FsmEvent
from chartstore.core.transitions import Transition, _ActionExecutor, parse_transitions
from chartstore.interfaces.protocols import Scheduler

logger = logging.getLogger(__name__)

AFTER = "fsm/after"


def after_event(node_id: str, delay_ms: float) -> FsmEvent:
    """The delayed event scheduled for `delay_ms` on entering `node_id`."""
    return FsmEvent(type=AFTER, data=(node_id, delay_ms))


class SimpleEngine:
    """
    Computes initial and next states for FsmDefinitions with flat nodes,
    guarded transitions, entry/exit actions and delayed (``after``) transitions.
    """

    def initialize(
        self,
        definition: FsmDefinition,
        args: Optional[Mapping[str, Any]] = None,
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> MachineState:
        """
        Enter the initial node. `args` is merged over the definition's context.
        """
        context: Dict[str, Any] = dict(definition.context)
        if args:
            context.update(args)
        initial = definition.initial
        event = FsmEvent(type=INIT, data=args)
        node = self._node(definition, initial)
        context = _ActionExecutor().execute(_actions(node.get("entry")), context, event)
        self._schedule_delays(initial, node, scheduler)
        return MachineState(initial, context)

    def transition(
        self,
        definition: FsmDefinition,
        state: MachineState,
        event: Union[str, FsmEvent],
        options: Optional[TransitionOptions] = None,
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> MachineState:
        """
        Compute the state reached from `state` on `event`.

        :raises UnknownEventError: If the current node declares no transition
            for the event and unknown events are not ignored.
        """
        options = options or TransitionOptions()
        if isinstance(event, str):
            event = FsmEvent(type=event)

        source = state.value
        node = self._node(definition, source)
        candidates = self._candidates(node, source, event)
        if candidates is None:
            if event.type == AFTER:
                # Timer of a node that has been left.
                logger.debug("Ignoring delayed event %s in state %s", event.data, source)
                return state
            if options.ignore_unknown_event:
                return state
            raise UnknownEventError(source, event.type)

        chosen = next((t for t in candidates if t.evaluate_guards(state.context, event)), None)
        if chosen is None:
            return state

        if chosen.internal:
            return MachineState(source, chosen.execute_actions(state.context, event))

        # Timers change only after every action has run.
        target = chosen.target
        target_node = self._node(definition, target)
        context = _ActionExecutor().execute(_actions(node.get("exit")), state.context, event)
        context = chosen.execute_actions(context, event)
        context = _ActionExecutor().execute(_actions(target_node.get("entry")), context, event)
        self._require_scheduler(target, target_node, scheduler)
        self._unschedule_delays(source, node, scheduler)
        self._schedule_delays(target, target_node, scheduler)
        return MachineState(target, context)

    def matches(self, state: Any, node_id: str) -> bool:
        return getattr(state, "value", state) == node_id

    def _node(self, definition: FsmDefinition, node_id: str) -> Mapping[str, Any]:
        try:
            return definition.states[node_id]
        except KeyError:
            raise DefinitionError(f"State '{node_id}' is not declared", {"id": definition.id}) from None

    def _candidates(self, node: Mapping[str, Any], source: str, event: FsmEvent) -> Optional[List[Transition]]:
        if event.type == AFTER:
            node_id, delay = event.data
            delayed = node.get("after") or {}
            if node_id != source or delay not in delayed:
                return None
            return parse_transitions(delayed[delay])
        declared = node.get("on") or {}
        if event.type not in declared:
            return None
        return parse_transitions(declared[event.type])

    def _require_scheduler(self, node_id: str, node: Mapping[str, Any], scheduler: Optional[Scheduler]) -> None:
        if node.get("after") and scheduler is None:
            raise TransitionError(f"State '{node_id}' has delayed transitions but no scheduler is bound")

    def _schedule_delays(self, node_id: str, node: Mapping[str, Any], scheduler: Optional[Scheduler]) -> None:
        self._require_scheduler(node_id, node, scheduler)
        for delay in node.get("after") or {}:
            scheduler.schedule(after_event(node_id, delay), delay)

    def _unschedule_delays(self, node_id: str, node: Mapping[str, Any], scheduler: Optional[Scheduler]) -> None:
        if scheduler is None:
            return
        for delay in node.get("after") or {}:
            scheduler.unschedule(after_event(node_id, delay))


def _actions(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if callable(raw):
        return [raw]
    return list(raw)
