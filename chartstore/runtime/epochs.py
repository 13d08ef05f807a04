# chartstore/runtime/epochs.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from enum import Enum, auto
from typing import Dict, Hashable

from chartstore.core.errors import EpochError


class Staleness(Enum):
    """Outcome of comparing a scheduled event's epoch with its instance's."""

    CURRENT = auto()  # Scheduled under the live epoch
    STALE = auto()  # Superseded by a later init/restart


class EpochTracker:
    """
    Per-instance monotonic counters. An instance's epoch advances exactly once
    per init or restart and is stamped on the envelope; delayed events carry
    the epoch of the envelope that scheduled them.

    The tracker is the only writer of its table; ids are never forgotten.
    """

    def __init__(self) -> None:
        self._epochs: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def advance(self, fsm_id: Hashable, floor: int = 0) -> int:
        """
        Move `fsm_id` to a new epoch.

        :param floor: Epoch the new one must exceed, e.g. that of an envelope
            persisted before this tracker saw the id.
        :return: The new epoch (the first is 1).
        """
        with self._lock:
            epoch = max(self._epochs.get(fsm_id, 0), floor) + 1
            self._epochs[fsm_id] = epoch
            return epoch

    def current(self, fsm_id: Hashable) -> int:
        """Current epoch of `fsm_id`, 0 if it was never initialized."""
        with self._lock:
            return self._epochs.get(fsm_id, 0)

    def __contains__(self, fsm_id: object) -> bool:
        with self._lock:
            return fsm_id in self._epochs

    @staticmethod
    def compare(tagged: int, current: int) -> Staleness:
        """
        Classify an event tagged with `tagged` against the instance epoch `current`.

        :raises EpochError: If the event claims an epoch the instance has not reached.
        """
        if tagged == current:
            return Staleness.CURRENT
        if tagged < current:
            return Staleness.STALE
        raise EpochError(
            f"Event epoch {tagged} is ahead of instance epoch {current}",
            {"event_epoch": tagged, "instance_epoch": current},
        )


_PROCESS_EPOCHS = EpochTracker()


def process_epochs() -> EpochTracker:
    """The tracker shared by every controller that is not given its own."""
    return _PROCESS_EPOCHS
