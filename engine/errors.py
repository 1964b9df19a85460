"""
engine/errors.py

Exception hierarchy for the workspace engine.

Missing block ids are not errors: lookups return ``None`` and updates
return ``False`` so that a deletion racing a drag never breaks the
interaction pipeline.
"""

from __future__ import annotations


class WorkspaceError(Exception):
    """Base class for workspace engine errors."""


class StorageError(WorkspaceError):
    """The key-value storage could not be read or written."""


class StorageQuotaError(StorageError):
    """A write would exceed the storage quota."""

    def __init__(self, key: str, needed: int, quota: int):
        super().__init__(f"Writing '{key}' needs {needed} chars, quota is {quota}")
        self.key = key
        self.needed = needed
        self.quota = quota


class InvalidDropError(WorkspaceError):
    """A dropped or selected file is not a readable image."""


class RecordError(WorkspaceError):
    """A stored record cannot be turned back into workspace state."""
