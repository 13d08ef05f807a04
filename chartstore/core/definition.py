# chartstore/core/definition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Hashable, List, Mapping, Optional

from chartstore.core.errors import DefinitionError, MissingIdError

if TYPE_CHECKING:
    from chartstore.interfaces.protocols import Clock


@dataclass(frozen=True)
class TransitionOptions:
    """
    Engine options applied to every transition of an instance.

    :param ignore_unknown_event: Treat an event with no transition from the
        current node as a no-op instead of raising UnknownEventError.
    """

    ignore_unknown_event: bool = False


@dataclass(frozen=True)
class FsmDefinition:
    """
    Immutable description of a machine plus the out-of-band configuration used
    when it is started.

    :param initial: Id of the initial node.
    :param states: Mapping of node id to node spec (see SimpleEngine for the format).
    :param id: Instance id. Required to start the machine.
    :param context: Initial extended state.
    :param open: Route every pipeline event to the machine instead of only
        addressed transitions.
    :param transition_opts: Engine options.
    :param clock: Time source for delayed transitions; the controller default when None.
    """

    initial: str
    states: Mapping[str, Mapping[str, Any]]
    id: Optional[Hashable] = None
    context: Mapping[str, Any] = field(default_factory=dict)
    open: bool = False
    transition_opts: TransitionOptions = field(default_factory=TransitionOptions)
    clock: Optional["Clock"] = None

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Any]) -> "FsmDefinition":
        """
        Build a definition from its plain-mapping form, e.g.::

            FsmDefinition.from_mapping({
                "id": "editor",
                "initial": "clean",
                "states": {"clean": {"on": {"edit-started": "editing"}}, ...},
                "transition_opts": {"ignore_unknown_event": True},
            })
        """
        if "initial" not in spec or "states" not in spec:
            raise DefinitionError("Definition must declare 'initial' and 'states'", {"keys": sorted(spec)})
        opts = spec.get("transition_opts") or TransitionOptions()
        if isinstance(opts, Mapping):
            opts = TransitionOptions(**opts)
        return cls(
            initial=spec["initial"],
            states=spec["states"],
            id=spec.get("id"),
            context=spec.get("context") or {},
            open=bool(spec.get("open", False)),
            transition_opts=opts,
            clock=spec.get("clock"),
        )

    def with_id(self, fsm_id: Hashable) -> "FsmDefinition":
        """Return a copy of this definition bound to another id."""
        return replace(self, id=fsm_id)

    def resolved_options(self) -> TransitionOptions:
        """
        Options the instance actually runs with. Open machines see every event
        in the system, so they always ignore events they have no transition for.
        """
        if self.open and not self.transition_opts.ignore_unknown_event:
            return replace(self.transition_opts, ignore_unknown_event=True)
        return self.transition_opts


def validate_definition(definition: FsmDefinition) -> None:
    """
    Check that a definition can be started.

    :raises MissingIdError: If the definition has no id.
    :raises DefinitionError: If the initial node or a transition target is undeclared.
    """
    if definition.id is None or definition.id == "":
        raise MissingIdError("Definition must have an id to be started")

    errors: List[str] = []
    if definition.initial not in definition.states:
        errors.append(f"Initial state '{definition.initial}' is not declared")

    for name, node in definition.states.items():
        for target in _declared_targets(node):
            if target is not None and target not in definition.states:
                errors.append(f"State '{name}' transitions to undeclared state '{target}'")

    if errors:
        raise DefinitionError("\n".join(errors), {"id": definition.id, "errors": errors})


def _declared_targets(node: Mapping[str, Any]) -> List[Optional[str]]:
    targets: List[Optional[str]] = []
    for section in ("on", "after"):
        for raw in (node.get(section) or {}).values():
            specs = raw if isinstance(raw, (list, tuple)) else [raw]
            for spec in specs:
                targets.append(spec.get("target") if isinstance(spec, Mapping) else spec)
    return targets


@dataclass(frozen=True)
class MachineState:
    """
    State produced by the reference engine: the current node and the extended
    state (context).
    """

    value: str
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StateEnvelope:
    """
    Persisted record of one instance.

    `current_state` is owned by the engine; `epoch` is owned by the runtime
    and changes only on init and restart.
    """

    current_state: Any
    epoch: int

    @property
    def value(self) -> Any:
        """Id of the current node."""
        return getattr(self.current_state, "value", self.current_state)

    def advanced(self, state: Any) -> "StateEnvelope":
        """Return an envelope holding `state` under the same epoch."""
        return replace(self, current_state=state)

    def as_dict(self) -> Dict[str, Any]:
        return {"state": self.value, "epoch": self.epoch, "context": dict(getattr(self.current_state, "context", {}))}
