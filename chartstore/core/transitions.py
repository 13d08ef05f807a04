# chartstore/core/transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from chartstore.core.errors import ActionError, DefinitionError
from chartstore.core.events import FsmEvent
from chartstore.interfaces.types import Action, Guard


class Transition:
    """
    One declared path out of a node, guarded by conditions and carrying
    actions. A transition without a target is internal: its actions run but
    the node does not change and entry/exit actions are skipped.
    """

    def __init__(
        self,
        target: Optional[str],
        guards: Optional[List[Guard]] = None,
        actions: Optional[List[Action]] = None,
        priority: int = 0,
    ) -> None:
        """
        :param target: Destination node, or None for an internal transition.
        :param guards: Guard conditions that must all hold.
        :param actions: Actions run when the transition is taken.
        :param priority: Higher priority transitions are tried first.
        """
        self._target = target
        self._guards = guards if guards else []
        self._actions = actions if actions else []
        self._priority = priority

    @classmethod
    def parse(cls, raw: Any) -> "Transition":
        """
        Build a transition from its declarative form: a target node id, or a
        mapping with `target`, `guard`/`guards`, `actions` and `priority`.
        """
        if raw is None or isinstance(raw, str):
            return cls(target=raw)
        if not isinstance(raw, Mapping):
            raise DefinitionError(f"Invalid transition spec: {raw!r}")
        guards = list(raw.get("guards", []))
        if raw.get("guard") is not None:
            guards.insert(0, raw["guard"])
        actions = raw.get("actions", [])
        if callable(actions):
            actions = [actions]
        return cls(target=raw.get("target"), guards=guards, actions=list(actions), priority=raw.get("priority", 0))

    def evaluate_guards(self, context: Mapping[str, Any], event: FsmEvent) -> bool:
        """
        :return: True if all guards pass, otherwise False.
        """
        return _GuardEvaluator().evaluate(self._guards, context, event)

    def execute_actions(self, context: Mapping[str, Any], event: FsmEvent) -> Mapping[str, Any]:
        """
        Run the transition's actions and return the resulting context.

        :raises ActionError: If any action fails.
        """
        return _ActionExecutor().execute(self._actions, context, event)

    def get_priority(self) -> int:
        return self._priority

    @property
    def target(self) -> Optional[str]:
        return self._target

    @property
    def internal(self) -> bool:
        return self._target is None

    @property
    def guards(self) -> List[Guard]:
        return self._guards

    @property
    def actions(self) -> List[Action]:
        return self._actions


def parse_transitions(raw: Any) -> List[Transition]:
    """
    Parse one or several declared transitions, ordered by descending priority.
    Transitions of equal priority keep their declaration order.
    """
    specs = raw if isinstance(raw, (list, tuple)) else [raw]
    return _TransitionPrioritySorter().sort([Transition.parse(spec) for spec in specs])


class _TransitionPrioritySorter:
    """
    Internal utility to sort a list of transitions by their priority, ensuring
    that the highest priority valid transition is selected first.
    """

    def sort(self, transitions: List[Transition]) -> List[Transition]:
        return sorted(transitions, key=lambda t: t.get_priority(), reverse=True)


class _GuardEvaluator:
    """
    Internal helper to evaluate a list of guard conditions against an event.
    """

    def evaluate(self, guards: Sequence[Guard], context: Mapping[str, Any], event: FsmEvent) -> bool:
        for g in guards:
            if not g(context, event):
                return False
        return True


class _ActionExecutor:
    """
    Internal helper threading the context through a list of actions. An action
    returns the new context, or None to leave it unchanged.
    """

    def execute(self, actions: Sequence[Action], context: Mapping[str, Any], event: FsmEvent) -> Mapping[str, Any]:
        for a in actions:
            try:
                result = a(context, event)
            except Exception as e:
                raise ActionError(f"Action execution failed: {e}", {"event": event.type}) from e
            if result is not None:
                context = result
        return context
