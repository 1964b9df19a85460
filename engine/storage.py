"""
engine/storage.py

String key-value storage backends for the workspace record.

Only the persistence codec talks to these.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from engine.errors import StorageError, StorageQuotaError

log = logging.getLogger(__name__)


class KeyValueStorage:
    """Interface for string-valued storage with an optional size quota."""

    quota_chars: Optional[int] = None

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def _check_quota(self, data: Dict[str, str], key: str, value: str):
        """Raise StorageQuotaError if storing ``value`` under ``key`` would exceed the quota."""
        if self.quota_chars is None:
            return
        used = sum(len(k) + len(v) for k, v in data.items() if k != key)
        needed = used + len(key) + len(value)
        if needed > self.quota_chars:
            raise StorageQuotaError(key, needed, self.quota_chars)


class MemoryStorage(KeyValueStorage):
    """In-process storage, used for tests and throwaway sessions."""

    def __init__(self, quota_chars: Optional[int] = None, initial: Optional[Dict[str, str]] = None):
        self.quota_chars = quota_chars
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        self._check_quota(self._data, key, value)
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class FileStorage(KeyValueStorage):
    """
    Storage persisted as a single JSON object on disk.

    The file is read lazily on first access and rewritten on every change.

    Args:
        path: Location of the JSON file (parent directories are created).
        quota_chars: Maximum total characters of keys plus values.
    """

    def __init__(self, path: Path, quota_chars: Optional[int] = None):
        self.path = Path(path)
        self.quota_chars = quota_chars
        self._data: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data
        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
                else:
                    log.warning("Ignoring storage file %s: not a JSON object", self.path)
            except (OSError, ValueError) as e:
                log.warning("Could not read storage file %s: %s", self.path, e)
        self._data = data
        return data

    def _flush(self, data: Dict[str, str]):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Could not write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        data = self._load()
        self._check_quota(data, key, value)
        updated = dict(data)
        updated[key] = value
        self._flush(updated)
        self._data = updated

    def remove(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        updated = {k: v for k, v in data.items() if k != key}
        self._flush(updated)
        self._data = updated

    def keys(self) -> List[str]:
        return list(self._load())
