# chartstore/runtime/store.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Single-writer application store with a serialized, interceptor-based dispatch
pipeline.

Each event is processed to completion (before hooks, handler, after hooks,
commit) before the next one starts. Events dispatched while an event is being
processed are queued behind it.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Deque, Dict, Mapping, Optional

from chartstore.core.errors import DispatchError
from chartstore.interfaces.types import Db, DbHandler, FxHandler
from chartstore.runtime.interceptors import InterceptorRegistry

logger = logging.getLogger(__name__)


@dataclass
class Context:
    """
    State of one pipeline turn.

    :param event: The event, possibly rewritten by before hooks.
    :param db: Snapshot of the store taken when the turn started.
    :param effects: Effects produced so far. Recognized keys are ``db`` (the
        new store value) and ``dispatch`` (events to enqueue).
    """

    event: Any
    db: Db
    effects: Dict[str, Any] = field(default_factory=dict)

    def with_event(self, event: Any) -> "Context":
        return replace(self, event=event)

    @property
    def effective_db(self) -> Db:
        """The db as the effects so far would commit it."""
        return self.effects.get("db", self.db)


class _DispatchQueueLock:
    """
    Internal context manager serializing access to the pipeline. Re-entrant so
    a handler may dispatch on the thread that is already draining.
    """

    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock

    def __enter__(self) -> None:
        self._lock.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._lock.release()


class AppStore:
    """
    Central event-sourced store. Holds the db, the per-kind handlers and the
    global interceptor chain.
    """

    def __init__(self, db: Optional[Mapping[str, Any]] = None, interceptors: Optional[InterceptorRegistry] = None):
        """
        :param db: Initial store value.
        :param interceptors: Global interceptor registry; a fresh one when omitted.
        """
        self._db: Db = dict(db or {})
        self._handlers: Dict[str, FxHandler] = {}
        self._interceptors = interceptors if interceptors is not None else InterceptorRegistry()
        self._queue: Deque[Any] = deque()
        self._lock = threading.RLock()
        self._draining = False

    @property
    def db(self) -> Db:
        """Current committed store value."""
        return self._db

    @property
    def interceptors(self) -> InterceptorRegistry:
        return self._interceptors

    def reg_event_db(self, kind: str, handler: DbHandler) -> None:
        """
        Register a handler computing the next db from ``(db, event)``.
        """

        def _fx(context: Context) -> Dict[str, Any]:
            return {"db": handler(context.db, context.event)}

        self.reg_event_fx(kind, _fx)

    def reg_event_fx(self, kind: str, handler: FxHandler) -> None:
        """
        Register a handler returning an effects mapping for a Context.
        Registering a kind again replaces its handler.
        """
        if kind in self._handlers:
            logger.debug("Replacing handler for %s", kind)
        self._handlers[kind] = handler

    def clear_event(self, kind: str) -> None:
        self._handlers.pop(kind, None)

    def has_handler(self, kind: str) -> bool:
        return kind in self._handlers

    def dispatch(self, event: Any) -> None:
        """
        Enqueue an event. If no event is being processed the queue is drained
        on the calling thread before returning.

        :raises Exception: Any error raised while draining; the remaining queue is purged.
        """
        with _DispatchQueueLock(self._lock):
            self._queue.append(event)
            if self._draining:
                return
            self._drain()

    def dispatch_sync(self, event: Any) -> None:
        """
        Process an event immediately, then drain anything it enqueued.

        :raises DispatchError: If called from inside an event handler.
        """
        with _DispatchQueueLock(self._lock):
            if self._draining:
                raise DispatchError("dispatch_sync cannot be called while an event is being processed",
                                    {"event": getattr(event, "kind", None)})
            self._queue.appendleft(event)
            self._drain()

    def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                self._process(self._queue.popleft())
        except Exception:
            dropped = len(self._queue)
            self._queue.clear()
            if dropped:
                logger.warning("Purged %d queued events after a handler failure", dropped)
            raise
        finally:
            self._draining = False

    def _process(self, event: Any) -> None:
        kind = getattr(event, "kind", None)
        chain = self._interceptors.chain()
        handler = self._handlers.get(kind)
        if handler is None:
            if not chain:
                logger.warning("No handler registered for %s", kind)
                return
            logger.debug("No handler registered for %s; running global interceptors only", kind)

        context = Context(event=event, db=self._db)
        for interceptor in chain:
            if interceptor.before is not None:
                context = interceptor.before(context)

        if handler is not None:
            effects = handler(context)
            if effects:
                context.effects.update(effects)

        for interceptor in reversed(chain):
            if interceptor.after is not None:
                context = interceptor.after(context)

        self._commit(context.effects)

    def _commit(self, effects: Mapping[str, Any]) -> None:
        if "db" in effects:
            self._db = effects["db"]
        for queued in effects.get("dispatch", ()):
            self._queue.append(queued)
