"""
chartstore: statechart instances living inside a single-writer application store.

Architecture:
- core: definitions, events, errors and the reference SimpleEngine
- runtime: AppStore dispatch pipeline, routers, delayed events and the
  LifecycleController managing instances
- interfaces: protocols for pluggable engines, adapters and clocks

Example:
    store = AppStore()
    controller = LifecycleController(store)
    controller.start(FsmDefinition.from_mapping({...}))
    controller.transition("editor", "edit-started")
"""

from .core import (
    AFTER,
    ChartStoreError,
    DefinitionError,
    DispatchError,
    EpochError,
    Event,
    FsmDefinition,
    FsmEvent,
    MachineState,
    MissingIdError,
    RegistrationError,
    SimpleEngine,
    StateEnvelope,
    StateMatchError,
    TransitionError,
    TransitionOptions,
    UnknownEventError,
    match_state,
    transition,
)
from .runtime import (
    AdapterTable,
    AppStore,
    AsyncioClock,
    EpochTracker,
    HookManager,
    InstanceHandle,
    LifecycleController,
    ManualClock,
    MappingStateAdapter,
    PathStateAdapter,
    WallClock,
)

__version__ = "0.1.0"

__all__ = [
    "AFTER",
    "ChartStoreError",
    "DefinitionError",
    "DispatchError",
    "EpochError",
    "MissingIdError",
    "RegistrationError",
    "StateMatchError",
    "TransitionError",
    "UnknownEventError",
    "Event",
    "FsmEvent",
    "FsmDefinition",
    "MachineState",
    "StateEnvelope",
    "TransitionOptions",
    "SimpleEngine",
    "match_state",
    "transition",
    "AdapterTable",
    "AppStore",
    "AsyncioClock",
    "EpochTracker",
    "HookManager",
    "InstanceHandle",
    "LifecycleController",
    "ManualClock",
    "MappingStateAdapter",
    "PathStateAdapter",
    "WallClock",
]
