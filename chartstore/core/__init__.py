"""
Core package: definitions, the event vocabulary, errors and the reference engine.

Architecture:
- Describes machines (FsmDefinition) and their persisted record (StateEnvelope)
- Defines the tagged event variants flowing through the dispatch pipeline
- Ships SimpleEngine, a flat-machine engine the runtime drives as a black box

Cross-cutting:
- Structured error hierarchy rooted at ChartStoreError
- Immutable value objects, safe to share between pipeline turns
"""

# Import order matters to avoid circular dependencies
from .errors import (
    ActionError,
    ChartStoreError,
    DefinitionError,
    DispatchError,
    EpochError,
    MissingIdError,
    RegistrationError,
    StateMatchError,
    TransitionError,
    UnknownEventError,
)
from .events import (
    INIT,
    RESERVED_KINDS,
    RESTART,
    START,
    STOP,
    TRANSITION,
    Event,
    FsmEvent,
    InitEvent,
    RestartEvent,
    StartEvent,
    StopEvent,
    TransitionEvent,
    transition,
)
from .definition import FsmDefinition, MachineState, StateEnvelope, TransitionOptions, validate_definition
from .transitions import Transition
from .engine import AFTER, SimpleEngine, after_event
from .matching import match_state

__all__ = [
    # Errors
    "ActionError",
    "ChartStoreError",
    "DefinitionError",
    "DispatchError",
    "EpochError",
    "MissingIdError",
    "RegistrationError",
    "StateMatchError",
    "TransitionError",
    "UnknownEventError",
    # Events
    "INIT",
    "START",
    "STOP",
    "RESTART",
    "TRANSITION",
    "RESERVED_KINDS",
    "Event",
    "FsmEvent",
    "InitEvent",
    "StartEvent",
    "StopEvent",
    "RestartEvent",
    "TransitionEvent",
    "transition",
    # Definitions
    "FsmDefinition",
    "MachineState",
    "StateEnvelope",
    "TransitionOptions",
    "validate_definition",
    # Engine
    "AFTER",
    "SimpleEngine",
    "Transition",
    "after_event",
    "match_state",
]
