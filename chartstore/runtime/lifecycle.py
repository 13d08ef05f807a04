# chartstore/runtime/lifecycle.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Instance lifecycle controller.

The controller registers the handlers for the lifecycle and transition event
kinds on an AppStore, and is the only component that installs or removes
routers. Every public operation is a dispatch, so lifecycle changes are
serialized with all other events. Use one controller per store.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Union

from chartstore.core.definition import FsmDefinition, StateEnvelope, validate_definition
from chartstore.core.engine import SimpleEngine
from chartstore.core.events import (
    INIT,
    RESTART,
    START,
    STOP,
    TRANSITION,
    FsmEvent,
    InitEvent,
    RestartEvent,
    StartEvent,
    StopEvent,
    TransitionEvent,
    transition,
)
from chartstore.interfaces.protocols import Clock, StatechartEngine
from chartstore.interfaces.types import Db
from chartstore.runtime.adapters import AdapterTable
from chartstore.runtime.epochs import EpochTracker, process_epochs
from chartstore.runtime.hooks import HookManager
from chartstore.runtime.instance import RuntimeInstance
from chartstore.runtime.router import ClosedRouter, OpenRouter, TransitionStep, router_key
from chartstore.runtime.scheduler import DelayedEventScheduler, WallClock
from chartstore.runtime.store import AppStore

logger = logging.getLogger(__name__)


class LifecycleController:
    """
    Starts, stops and restarts FSM instances bound to an AppStore.
    """

    def __init__(
        self,
        store: AppStore,
        engine: Optional[StatechartEngine] = None,
        adapters: Optional[AdapterTable] = None,
        epochs: Optional[EpochTracker] = None,
        clock: Optional[Clock] = None,
        hooks: Optional[Union[HookManager, List[Any]]] = None,
    ) -> None:
        """
        :param store: Store whose pipeline the instances live in.
        :param engine: Statechart engine; SimpleEngine when omitted.
        :param adapters: Adapter table locating envelopes in the db.
        :param epochs: Epoch tracker; the process-wide tracker when omitted.
        :param clock: Default time source for definitions that bring none.
        :param hooks: HookManager, or a list of hook objects.
        """
        self._store = store
        self._engine = engine if engine is not None else SimpleEngine()
        self._adapters = adapters if adapters is not None else AdapterTable()
        self._epochs = epochs if epochs is not None else process_epochs()
        self._clock = clock if clock is not None else WallClock()
        self._hooks = hooks if isinstance(hooks, HookManager) else HookManager(hooks)
        self._step = TransitionStep(self._hooks)
        self._instances: Dict[Hashable, RuntimeInstance] = {}
        self._schedulers: Dict[Hashable, DelayedEventScheduler] = {}
        self._install_handlers()

    @property
    def store(self) -> AppStore:
        return self._store

    @property
    def engine(self) -> StatechartEngine:
        return self._engine

    @property
    def adapters(self) -> AdapterTable:
        return self._adapters

    @property
    def epochs(self) -> EpochTracker:
        return self._epochs

    @property
    def hooks(self) -> HookManager:
        return self._hooks

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def init(self, definition: FsmDefinition, args: Optional[Mapping[str, Any]] = None) -> None:
        """Create the initial state of `definition` if none is persisted, without routing."""
        self._store.dispatch(InitEvent(definition, args))

    def start(self, definition: FsmDefinition) -> Hashable:
        """
        Initialize `definition` (if its state is absent) and install its router.

        :return: The instance id.
        :raises MissingIdError: If the definition has no id.
        """
        self._store.dispatch(StartEvent(definition))
        return definition.id

    def stop(self, fsm_id: Hashable) -> None:
        """Remove the instance's state, router and pending timers. Safe to repeat."""
        self._store.dispatch(StopEvent(fsm_id))

    def restart(self, target: Union[Hashable, FsmDefinition]) -> None:
        """Reset an instance to its initial state under a new epoch; routing is untouched."""
        self._store.dispatch(RestartEvent(target))

    def transition(self, fsm_id: Hashable, fsm_event: Union[str, FsmEvent], data: Any = None, *more_data: Any) -> None:
        """Dispatch an addressed transition for `fsm_id`."""
        self._store.dispatch(transition(fsm_id, fsm_event, data, *more_data))

    def state(self, fsm_id: Hashable) -> Optional[StateEnvelope]:
        """Full persisted envelope of `fsm_id`, or None."""
        return self._adapters.get_state(self._store.db, fsm_id)

    def current(self, fsm_id: Hashable) -> Optional[Any]:
        """Current node of `fsm_id`, or None."""
        envelope = self.state(fsm_id)
        return envelope.value if envelope is not None else None

    def matches(self, fsm_id: Hashable, node_id: str) -> bool:
        envelope = self.state(fsm_id)
        return envelope is not None and self._engine.matches(envelope.current_state, node_id)

    def is_running(self, fsm_id: Hashable) -> bool:
        return fsm_id in self._instances

    def instance(self, fsm_id: Hashable) -> Optional[RuntimeInstance]:
        return self._instances.get(fsm_id)

    @contextmanager
    def running(self, definition: FsmDefinition) -> Iterator["InstanceHandle"]:
        """
        Scoped instance: started on entry, stopped on every exit path.

        Example:
            with controller.running(editor) as fsm:
                fsm.transition("edit-started")
        """
        fsm_id = self.start(definition)
        try:
            yield InstanceHandle(self, fsm_id)
        finally:
            self.stop(fsm_id)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _install_handlers(self) -> None:
        self._store.reg_event_db(INIT, self._handle_init)
        self._store.reg_event_db(START, self._handle_start)
        self._store.reg_event_db(STOP, self._handle_stop)
        self._store.reg_event_db(RESTART, self._handle_restart)
        self._store.reg_event_db(TRANSITION, self._handle_transition)

    def _handle_init(self, db: Db, event: InitEvent) -> Db:
        validate_definition(event.definition)
        instance = self._instances.get(event.definition.id) or self._build_instance(event.definition)
        return self._initialize(db, instance, event.args)

    def _handle_start(self, db: Db, event: StartEvent) -> Db:
        definition = event.definition
        validate_definition(definition)
        fsm_id = definition.id
        instance = self._build_instance(definition, rebind_mode=True)
        db = self._initialize(db, instance)
        self._install_router(instance)
        self._instances[fsm_id] = instance
        logger.info("Started %s (%s mode)", fsm_id, "open" if definition.open else "closed")
        self._hooks.execute_on_start(fsm_id, self._adapters.get_state(db, fsm_id))
        return db

    def _handle_stop(self, db: Db, event: StopEvent) -> Db:
        fsm_id = event.fsm_id
        self._store.interceptors.unregister(router_key(fsm_id))
        instance = self._instances.pop(fsm_id, None)
        scheduler = self._schedulers.pop(fsm_id, None)
        if scheduler is not None:
            scheduler.cancel_all()
        envelope = self._adapters.get_state(db, fsm_id)
        if instance is None and envelope is None:
            logger.debug("Stop of %s ignored: not running", fsm_id)
            return db
        logger.info("Stopped %s", fsm_id)
        self._hooks.execute_on_stop(fsm_id)
        return self._adapters.set_state(db, fsm_id, None)

    def _handle_restart(self, db: Db, event: RestartEvent) -> Db:
        if event.instance is not None:
            instance = event.instance
        elif isinstance(event.target, FsmDefinition):
            validate_definition(event.target)
            instance = self._build_instance(event.target)
        else:
            instance = self._instances.get(event.target)
        if instance is None:
            logger.debug("Restart of %s ignored: no live instance", event.fsm_id)
            return db

        fsm_id = instance.fsm_id
        previous = self._adapters.get_state(db, fsm_id)
        epoch = self._epochs.advance(fsm_id, previous.epoch if previous is not None else 0)
        envelope = StateEnvelope(instance.initialize(epoch), epoch)
        logger.info("Restarted %s in epoch %s", fsm_id, epoch)
        self._hooks.execute_on_restart(fsm_id, envelope)
        return self._adapters.set_state(db, fsm_id, envelope)

    def _handle_transition(self, db: Db, event: TransitionEvent) -> Db:
        if not event.bound:
            logger.debug("Transition for %s not claimed by a closed router", event.fsm_id)
            return db
        envelope = self._adapters.get_state(db, event.fsm_id)
        if envelope is None:
            logger.debug("Transition for %s ignored: no state", event.fsm_id)
            return db
        updated = self._step.apply(event.instance, envelope, event.to_fsm_event())
        if updated is envelope:
            return db
        return self._adapters.set_state(db, event.fsm_id, updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_instance(self, definition: FsmDefinition, rebind_mode: bool = False) -> RuntimeInstance:
        """
        Bind `definition` to the id's scheduler, creating it on first use. An
        existing scheduler only switches mode when the router is reinstalled.
        """
        fsm_id = definition.id
        scheduler = self._schedulers.get(fsm_id)
        if scheduler is None:
            scheduler = DelayedEventScheduler(
                fsm_id, self._store.dispatch, definition.clock or self._clock, open_mode=definition.open
            )
            self._schedulers[fsm_id] = scheduler
        elif rebind_mode:
            scheduler.open_mode = definition.open
        return RuntimeInstance(definition, scheduler, self._engine, definition.resolved_options())

    def _initialize(self, db: Db, instance: RuntimeInstance, args: Optional[Mapping[str, Any]] = None) -> Db:
        fsm_id = instance.fsm_id
        if self._adapters.get_state(db, fsm_id) is not None:
            logger.debug("%s already initialized", fsm_id)
            return db
        epoch = self._epochs.advance(fsm_id)
        envelope = StateEnvelope(instance.initialize(epoch, args), epoch)
        return self._adapters.set_state(db, fsm_id, envelope)

    def _install_router(self, instance: RuntimeInstance) -> None:
        key = router_key(instance.fsm_id)
        registry = self._store.interceptors
        if registry.unregister(key) is not None:
            logger.debug("Re-installing router for %s", instance.fsm_id)
        if instance.open:
            router = OpenRouter(instance, self._adapters, self._step)
        else:
            router = ClosedRouter(instance)
        registry.register(key, router.interceptor())


class InstanceHandle:
    """
    Handle yielded by LifecycleController.running, addressing one instance.
    """

    def __init__(self, controller: LifecycleController, fsm_id: Hashable) -> None:
        self._controller = controller
        self._fsm_id = fsm_id

    @property
    def fsm_id(self) -> Hashable:
        return self._fsm_id

    @property
    def state(self) -> Optional[StateEnvelope]:
        return self._controller.state(self._fsm_id)

    @property
    def current(self) -> Optional[Any]:
        return self._controller.current(self._fsm_id)

    def transition(self, fsm_event: Union[str, FsmEvent], data: Any = None, *more_data: Any) -> None:
        self._controller.transition(self._fsm_id, fsm_event, data, *more_data)

    def matches(self, node_id: str) -> bool:
        return self._controller.matches(self._fsm_id, node_id)

    def restart(self) -> None:
        self._controller.restart(self._fsm_id)
