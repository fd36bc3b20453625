"""Errors raised while syncing one outbox task."""
from __future__ import annotations


class SyncError(RuntimeError):
    """Base error for a task that could not be synced this time."""


class NotReadyError(SyncError):
    """The target exists but is not in a state that may be pushed yet."""


class ParentNotReadyError(NotReadyError):
    """A batched resource's batch has no external page yet."""


class MissingEntityError(SyncError):
    """The task refers to a row that does not exist."""
