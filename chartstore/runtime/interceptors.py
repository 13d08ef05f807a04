# chartstore/runtime/interceptors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Hashable, Optional, Tuple

from chartstore.core.errors import RegistrationError

if TYPE_CHECKING:
    from chartstore.runtime.store import Context

Hook = Callable[["Context"], "Context"]


@dataclass(frozen=True)
class Interceptor:
    """
    A pair of hooks wrapped around every event handler.

    `before` runs ahead of the handler in registration order and may rewrite
    the event; `after` runs behind it in reverse order and may add effects.
    """

    id: Hashable
    before: Optional[Hook] = None
    after: Optional[Hook] = None


class InterceptorRegistry:
    """
    Ordered set of global interceptors with one slot per key.

    `register` and `unregister` are the only mutators. Registering an occupied
    key is an error: the previous interceptor must be removed first.
    """

    def __init__(self) -> None:
        self._entries: "OrderedDict[Hashable, Interceptor]" = OrderedDict()
        self._lock = threading.Lock()

    def register(self, key: Hashable, interceptor: Interceptor) -> None:
        """
        Append an interceptor to the chain.

        :raises RegistrationError: If `key` already holds an interceptor.
        """
        with self._lock:
            if key in self._entries:
                raise RegistrationError(f"Interceptor '{key}' is already registered", {"key": key})
            self._entries[key] = interceptor

    def unregister(self, key: Hashable) -> Optional[Interceptor]:
        """
        Remove the interceptor held by `key`. Unknown keys are ignored.

        :return: The removed interceptor, if any.
        """
        with self._lock:
            return self._entries.pop(key, None)

    def chain(self) -> Tuple[Interceptor, ...]:
        """Snapshot of the chain in registration order."""
        with self._lock:
            return tuple(self._entries.values())

    def get(self, key: Hashable) -> Optional[Interceptor]:
        with self._lock:
            return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def chain_keys(self) -> Tuple[Hashable, ...]:
        with self._lock:
            return tuple(self._entries.keys())
