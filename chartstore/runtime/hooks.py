# chartstore/runtime/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Hashable, List, Optional


class HookManager:
    """
    Manages hook objects that observe instance lifecycle events (start, stop,
    restart, transition, discarded delayed events, errors). Users can attach
    logging, monitoring, or custom side effects without altering core logic.

    A hook implements any subset of:

    - on_start(fsm_id, envelope)
    - on_stop(fsm_id)
    - on_restart(fsm_id, envelope)
    - on_transition(fsm_id, old_envelope, new_envelope, event)
    - on_discard(fsm_id, event, envelope)
    - on_error(fsm_id, error)
    """

    def __init__(self, hooks: Optional[List[Any]] = None) -> None:
        self._hooks: List[Any] = list(hooks or [])

    def register_hook(self, hook: Any) -> None:
        """
        Add a new hook to the manager's list of hooks.
        """
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    def execute_on_start(self, fsm_id: Hashable, envelope: Any) -> None:
        _HookInvoker(self._hooks).invoke("on_start", fsm_id, envelope)

    def execute_on_stop(self, fsm_id: Hashable) -> None:
        _HookInvoker(self._hooks).invoke("on_stop", fsm_id)

    def execute_on_restart(self, fsm_id: Hashable, envelope: Any) -> None:
        _HookInvoker(self._hooks).invoke("on_restart", fsm_id, envelope)

    def execute_on_transition(self, fsm_id: Hashable, old: Any, new: Any, event: Any) -> None:
        _HookInvoker(self._hooks).invoke("on_transition", fsm_id, old, new, event)

    def execute_on_discard(self, fsm_id: Hashable, event: Any, envelope: Any) -> None:
        _HookInvoker(self._hooks).invoke("on_discard", fsm_id, event, envelope)

    def execute_on_error(self, fsm_id: Hashable, error: Exception) -> None:
        _HookInvoker(self._hooks).invoke("on_error", fsm_id, error)


class _HookInvoker:
    """
    Internal helper that iterates through a list of hooks and invokes one
    lifecycle method on each hook that defines it.
    """

    def __init__(self, hooks: List[Any]) -> None:
        self._hooks = hooks

    def invoke(self, method: str, *args: Any) -> None:
        for hook in self._hooks:
            fn = getattr(hook, method, None)
            if fn is not None:
                fn(*args)
