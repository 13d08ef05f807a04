# chartstore/runtime/adapters.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
State store adapters: where an instance's envelope lives inside the db.

The adapter for an id is chosen by the id's runtime type through an explicit
AdapterTable handed to the lifecycle controller.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Mapping, Optional, Sequence

from chartstore.interfaces.protocols import StateStoreAdapter
from chartstore.interfaces.types import Db

DEFAULT_ROOT = "fsm"


class MappingStateAdapter:
    """Keyed lookup in a flat mapping stored under one root key.

    Envelopes live at ``db[root][fsm_id]``.
    """

    def __init__(self, root: str = DEFAULT_ROOT) -> None:
        self._root = root

    @property
    def root(self) -> str:
        return self._root

    def get_state(self, db: Db, fsm_id: Hashable) -> Any:
        return (db.get(self._root) or {}).get(fsm_id)

    def set_state(self, db: Db, fsm_id: Hashable, envelope: Any) -> Db:
        slice_ = dict(db.get(self._root) or {})
        if envelope is None:
            if fsm_id not in slice_:
                return db
            del slice_[fsm_id]
        else:
            slice_[fsm_id] = envelope
        updated = dict(db)
        updated[self._root] = slice_
        return updated


class PathStateAdapter:
    """Stores envelopes at a nested path for tuple ids.

    ``("users", 7, "signup")`` places the envelope at
    ``db["users"][7]["signup"]``, next to the entity it describes. Intermediate
    mappings are copied on write, and emptied ones are pruned on removal.
    """

    def get_state(self, db: Db, fsm_id: Sequence[Hashable]) -> Any:
        node: Any = db
        for key in fsm_id:
            if not isinstance(node, Mapping) or key not in node:
                return None
            node = node[key]
        return node

    def set_state(self, db: Db, fsm_id: Sequence[Hashable], envelope: Any) -> Db:
        if not fsm_id:
            raise ValueError("Path id must not be empty")
        if envelope is None:
            updated = _dissoc_in(db, list(fsm_id))
            return db if updated is None else updated
        return _assoc_in(db, list(fsm_id), envelope)


def _assoc_in(node: Optional[Mapping[Hashable, Any]], path: list, value: Any) -> Dict[Hashable, Any]:
    updated = dict(node or {})
    head, rest = path[0], path[1:]
    updated[head] = _assoc_in(updated.get(head), rest, value) if rest else value
    return updated


def _dissoc_in(node: Mapping[Hashable, Any], path: list) -> Optional[Dict[Hashable, Any]]:
    """Return the mapping without `path`, or None when there was nothing to remove."""
    head, rest = path[0], path[1:]
    if not isinstance(node, Mapping) or head not in node:
        return None
    updated = dict(node)
    if not rest:
        del updated[head]
        return updated
    child = _dissoc_in(node[head], rest)
    if child is None:
        return None
    if child:
        updated[head] = child
    else:
        del updated[head]
    return updated


class AdapterTable:
    """Strategy table choosing a StateStoreAdapter by the type of the id.

    Lookup walks the id type's MRO, so registering ``tuple`` also covers
    namedtuples. Ids with no registered type use the default adapter.
    """

    def __init__(self, default: Optional[StateStoreAdapter] = None) -> None:
        self._default = default if default is not None else MappingStateAdapter()
        self._by_type: Dict[type, StateStoreAdapter] = {}

    @classmethod
    def with_paths(cls, default: Optional[StateStoreAdapter] = None) -> "AdapterTable":
        """Table routing tuple ids to a PathStateAdapter."""
        table = cls(default)
        table.register(tuple, PathStateAdapter())
        return table

    @property
    def default(self) -> StateStoreAdapter:
        return self._default

    def register(self, id_type: type, adapter: StateStoreAdapter) -> None:
        self._by_type[id_type] = adapter

    def resolve(self, fsm_id: Hashable) -> StateStoreAdapter:
        for cls in type(fsm_id).__mro__:
            adapter = self._by_type.get(cls)
            if adapter is not None:
                return adapter
        return self._default

    def get_state(self, db: Db, fsm_id: Hashable) -> Any:
        return self.resolve(fsm_id).get_state(db, fsm_id)

    def set_state(self, db: Db, fsm_id: Hashable, envelope: Any) -> Db:
        return self.resolve(fsm_id).set_state(db, fsm_id, envelope)
