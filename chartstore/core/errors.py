# chartstore/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Dict, Optional


class ChartStoreError(Exception):
    """
    Base exception class for errors raised by the store-bound state machine runtime.

    :param message: Human readable description.
    :param details: Optional dictionary of structured context for diagnostics.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DefinitionError(ChartStoreError):
    """
    Raised when a machine definition is malformed (unknown initial node,
    transition to a node that does not exist, ...).
    """


class MissingIdError(DefinitionError):
    """
    Raised when a definition without an id is started. Every live instance is
    addressed by its id, so an anonymous definition cannot be routed.
    """


class TransitionError(ChartStoreError):
    """
    Raised when a transition cannot be computed or completed.
    """


class UnknownEventError(TransitionError):
    """
    Raised when an event has no transition declared for the current node and
    the machine is not configured to ignore unknown events.
    """

    def __init__(self, node: str, event_type: str) -> None:
        super().__init__(
            f"Event '{event_type}' has no transition from state '{node}'",
            {"state": node, "event": event_type},
        )
        self.node = node
        self.event_type = event_type


class ActionError(TransitionError):
    """
    Raised when an entry, exit or transition action fails.
    """


class EpochError(ChartStoreError):
    """
    Raised when a scheduled event carries an epoch newer than the instance it
    targets. This cannot happen under correct use.
    """


class StateMatchError(ChartStoreError):
    """
    Raised by match_state when no clause matches and no default was supplied.
    """


class RegistrationError(ChartStoreError):
    """
    Raised when an interceptor is registered under a key that is already taken.
    """


class DispatchError(ChartStoreError):
    """
    Raised on invalid use of the dispatch pipeline, such as a synchronous
    dispatch issued from inside an event handler.
    """
