"""
Cache stores for derived schema metadata.

The analyzer only needs contains/fetch/save. Stores own their own lifetime and
eviction; none of the stores below expire entries.
"""

from __future__ import annotations

import hashlib
import logging
import os
import pickle
import tempfile
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Key/value store consulted by the analyzer."""

    def contains(self, key: str) -> bool:
        ...

    def fetch(self, key: str) -> Any:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


class MemoryCacheStore:
    """Thread-safe in-process cache store."""

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self._lock = RLock()

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def fetch(self, key: str) -> Any:
        """Return the value stored under key. Raises KeyError on a miss."""
        with self._lock:
            return self._entries[key]

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            logger.debug(f"[CACHE-SET] key='{key}', total_keys={len(self._entries)}")

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FileCacheStore:
    """
    Cache store persisting one pickle file per key.

    Entries survive across processes sharing the same directory, so a catalog
    read done by one process is reused by the next.
    """

    SUFFIX = ".pkl"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}{self.SUFFIX}"

    def contains(self, key: str) -> bool:
        return self._path_for(key).exists()

    def fetch(self, key: str) -> Any:
        """Load the value stored under key. Raises KeyError on a miss."""
        path = self._path_for(key)
        if not path.exists():
            raise KeyError(key)

        with open(path, "rb") as f:
            return pickle.load(f)

    def save(self, key: str, value: Any) -> None:
        path = self._path_for(key)

        # One temp file per writer, so concurrent saves of a key never share it
        with tempfile.NamedTemporaryFile(dir=self.directory, suffix=".tmp", delete=False) as f:
            tmp_path = f.name
            try:
                pickle.dump(value, f)
            except BaseException:
                f.close()
                os.unlink(tmp_path)
                raise
        os.replace(tmp_path, path)

        logger.debug(f"Saved cache entry '{key}' to {path}")

    def clear(self) -> None:
        """Remove every entry from the cache directory."""
        for path in self.directory.glob(f"*{self.SUFFIX}"):
            path.unlink()
