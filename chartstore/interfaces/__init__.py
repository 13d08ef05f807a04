"""
Interfaces for the collaborators the runtime drives but does not implement:
the statechart engine, the state store adapter and the time source.
"""

from .protocols import Clock, Scheduler, StatechartEngine, StateStoreAdapter

__all__ = ["Clock", "Scheduler", "StatechartEngine", "StateStoreAdapter"]
