"""Durable key-value storage backed by JSON files.

Each key is one file under the store directory. Operations never raise:
they return a :class:`StorageResult` and let the caller decide how to
degrade.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class StorageResult:
    """Outcome of a storage operation."""

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StorageResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "StorageResult":
        return cls(ok=False, error=f"{type(error).__name__}: {error}")


class JsonFileStore:
    """A directory of ``<key>.json`` files."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_RE.sub('_', key)}.json"

    def get(self, key: str) -> StorageResult:
        """Read ``key``; a missing key is a success with value None."""
        path = self._path(key)
        try:
            with path.open("r", encoding="utf-8") as fh:
                return StorageResult.success(json.load(fh))
        except FileNotFoundError:
            return StorageResult.success(None)
        except (OSError, ValueError) as e:
            return StorageResult.failure(e)

    def set(self, key: str, value: Any) -> StorageResult:
        """Write ``value`` atomically (temp file + rename)."""
        path = self._path(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False)
            os.replace(tmp_name, path)
            return StorageResult.success()
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug(f"Could not remove temp file {tmp_name}")
            return StorageResult.failure(e)

    def delete(self, key: str) -> StorageResult:
        """Remove ``key``; deleting a missing key succeeds."""
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            return StorageResult.failure(e)
        return StorageResult.success()


__all__ = ["JsonFileStore", "StorageResult"]
