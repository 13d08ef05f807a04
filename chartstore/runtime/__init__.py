"""
Runtime package: the store, the dispatch pipeline and the instance lifecycle.

Architecture:
- AppStore serializes events through handlers and global interceptors
- LifecycleController starts, stops and restarts instances, installing one
  router per live instance
- DelayedEventScheduler re-injects delayed events through dispatch, tagged
  with the instance epoch so stale ones can be discarded

Threading:
- Dispatch is serialized by a re-entrant lock; wall clock timers fire on
  their own threads and enter through dispatch like any other event
"""

from .interceptors import Interceptor, InterceptorRegistry
from .store import AppStore, Context
from .epochs import EpochTracker, Staleness, process_epochs
from .scheduler import AsyncioClock, DelayedEventScheduler, ManualClock, WallClock
from .adapters import AdapterTable, MappingStateAdapter, PathStateAdapter
from .hooks import HookManager
from .instance import RuntimeInstance
from .router import ClosedRouter, OpenRouter, StalenessFilter, TransitionStep, router_key
from .lifecycle import InstanceHandle, LifecycleController

__all__ = [
    # Store
    "AppStore",
    "Context",
    "Interceptor",
    "InterceptorRegistry",
    # Epochs and scheduling
    "EpochTracker",
    "Staleness",
    "process_epochs",
    "DelayedEventScheduler",
    "WallClock",
    "AsyncioClock",
    "ManualClock",
    # State location
    "AdapterTable",
    "MappingStateAdapter",
    "PathStateAdapter",
    # Lifecycle
    "HookManager",
    "RuntimeInstance",
    "ClosedRouter",
    "OpenRouter",
    "StalenessFilter",
    "TransitionStep",
    "router_key",
    "InstanceHandle",
    "LifecycleController",
]
