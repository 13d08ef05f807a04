# tests/unit/runtime/test_epochs.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading

import pytest

from chartstore.core.errors import EpochError
from chartstore.runtime.epochs import EpochTracker, Staleness, process_epochs


def test_advance_starts_at_one(epochs):
    assert epochs.current("m") == 0
    assert "m" not in epochs
    assert epochs.advance("m") == 1
    assert epochs.advance("m") == 2
    assert epochs.current("m") == 2
    assert "m" in epochs


def test_ids_are_independent(epochs):
    epochs.advance("a")
    epochs.advance("a")
    assert epochs.advance("b") == 1


def test_compare():
    assert EpochTracker.compare(3, 3) is Staleness.CURRENT
    assert EpochTracker.compare(2, 3) is Staleness.STALE
    with pytest.raises(EpochError) as exc:
        EpochTracker.compare(4, 3)
    assert exc.value.details == {"event_epoch": 4, "instance_epoch": 3}


def test_process_epochs_is_shared():
    assert process_epochs() is process_epochs()


def test_concurrent_advance_never_repeats(epochs):
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(100):
            epoch = epochs.advance("m")
            with lock:
                results.append(epoch)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == list(range(1, 501))


def test_advance_moves_past_floor(epochs):
    assert epochs.advance("m", floor=3) == 4
    # the floor never moves an epoch backwards
    assert epochs.advance("m", floor=1) == 5
