# chartstore/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

FsmId = Hashable
NodeId = str
Db = Mapping[str, Any]

# Callback Types
Guard = Callable[[Mapping[str, Any], Any], bool]
Action = Callable[[Mapping[str, Any], Any], Optional[Mapping[str, Any]]]
DbHandler = Callable[[Db, Any], Db]
FxHandler = Callable[[Any], Dict[str, Any]]
Dispatch = Callable[[Any], None]
