# tests/unit/runtime/test_hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from chartstore.runtime.hooks import HookManager


def test_hook_manager(hook):
    hm = HookManager(hooks=[hook])
    hm.execute_on_start("m", "ENV")
    hook.on_start.assert_called_once_with("m", "ENV")
    hm.execute_on_stop("m")
    hook.on_stop.assert_called_once_with("m")
    hm.execute_on_restart("m", "ENV2")
    hook.on_restart.assert_called_once_with("m", "ENV2")
    hm.execute_on_transition("m", "old", "new", "evt")
    hook.on_transition.assert_called_once_with("m", "old", "new", "evt")
    hm.execute_on_discard("m", "evt", "ENV")
    hook.on_discard.assert_called_once_with("m", "evt", "ENV")
    err = Exception("TestError")
    hm.execute_on_error("m", err)
    hook.on_error.assert_called_once_with("m", err)


def test_hook_manager_register(hook):
    hm = HookManager()
    hm.register_hook(hook)
    assert len(hm) == 1


def test_hooks_may_implement_a_subset():
    class StartOnly:
        def __init__(self):
            self.started = []

        def on_start(self, fsm_id, envelope):
            self.started.append(fsm_id)

    h = StartOnly()
    hm = HookManager([h])
    hm.execute_on_start("m", None)
    hm.execute_on_stop("m")
    hm.execute_on_error("m", RuntimeError())
    assert h.started == ["m"]
