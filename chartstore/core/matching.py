# chartstore/core/matching.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Iterable, List, Mapping, Tuple, Union

from chartstore.core.errors import StateMatchError
from chartstore.interfaces.protocols import StatechartEngine

_NO_DEFAULT = object()

Clauses = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def match_state(engine: StatechartEngine, state: Any, clauses: Clauses, default: Any = _NO_DEFAULT) -> Any:
    """
    Select the value of the first clause whose node the state is in.

    Clauses are tried in order. A callable value (or default) is called with the
    state and its result returned.

    :param engine: Engine providing `matches`.
    :param state: Machine state (or envelope current_state) to match.
    :param clauses: Mapping or sequence of (node_id, value) pairs.
    :param default: Fallback when nothing matches.
    :raises StateMatchError: If nothing matches and no default was given.
    """
    pairs = list(clauses.items()) if isinstance(clauses, Mapping) else list(clauses)
    tried: List[str] = []
    for node_id, value in pairs:
        if engine.matches(state, node_id):
            return value(state) if callable(value) else value
        tried.append(node_id)

    if default is _NO_DEFAULT:
        current = getattr(state, "value", state)
        raise StateMatchError(
            f"State '{current}' matched none of {tried}",
            {"state": current, "clauses": tried},
        )
    return default(state) if callable(default) else default
