import logging
import posixpath
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cachetools import LRUCache, TTLCache

logger = logging.getLogger(__name__)

_MISSING = object()


def normalize_path(path: str) -> str:
    """
    Normalize a path to its root-relative form, used as the cache key.

    Backslashes become forward slashes and redundant separators, "." and ".."
    segments collapse. Backends resolve every path below their root, so
    "/docs/a.txt" and "docs/a.txt" name the same entry; the root itself is ".".
    """
    path = path.replace("\\", "/")
    if not path:
        return "."
    return posixpath.normpath(path).lstrip("/") or "."


def parent_path(path: str) -> str:
    """Return the parent directory of a path ("." at the top)."""
    normalized = normalize_path(path)
    if normalized == ".":
        return normalized
    return posixpath.dirname(normalized) or "."


def ancestor_paths(path: str) -> list[str]:
    """Return every ancestor directory of a path, nearest first."""
    ancestors = []
    current = normalize_path(path)
    while True:
        parent = parent_path(current)
        if parent == current:
            return ancestors
        ancestors.append(parent)
        current = parent


def is_within(path: str, directory: str) -> bool:
    """
    Check whether a normalized path equals or lies below a normalized directory.

    The root "." contains every path that does not escape upwards.
    """
    if path == directory:
        return True
    if directory == ".":
        return path != ".." and not path.startswith("../")
    return path.startswith(directory + "/")


class _EvictionLogMixin:
    def popitem(self):
        key, value = super().popitem()
        logger.debug("Evicted least recently used cache entry: %s", key)
        return key, value


class _LRUCache(_EvictionLogMixin, LRUCache):
    pass


class _TTLCache(_EvictionLogMixin, TTLCache):
    pass


@dataclass(frozen=True)
class CacheStatistics:
    size: int
    capacity: int
    ttl_ms: int
    keys: tuple[str, ...]


class BoundedCache:
    """
    Bounded key/value store with least-recently-used eviction and lazy TTL expiry.

    Thread-safe. A ttl_ms of 0 means entries never expire. Expired entries are
    purged when an access observes them; there is no background sweep.
    A miss is reported as None, never as an exception.
    """

    def __init__(
        self,
        capacity: int,
        ttl_ms: int = 0,
        timer: Callable[[], float] = time.monotonic,
    ):
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"Cache capacity must be a positive integer, got {capacity!r}")
        if ttl_ms < 0:
            raise ValueError(f"Cache ttl_ms must not be negative, got {ttl_ms!r}")
        self.capacity = capacity
        self.ttl_ms = ttl_ms
        self._timer = timer
        self._lock = threading.Lock()
        self._data = self._new_store()

    def _new_store(self) -> LRUCache:
        if self.ttl_ms:
            return _TTLCache(self.capacity, self.ttl_ms / 1000.0, timer=self._timer)
        return _LRUCache(self.capacity)

    def get(self, key: str) -> Any | None:
        """
        Retrieve a value and mark it most recently used.

        Args:
            key: The key to look up.

        Returns:
            The cached value if present and not expired, else None.
        """
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                if self.ttl_ms:
                    # Drop whatever has expired, including this key
                    self._data.expire()
                return None
            return value

    def put(self, key: str, value: Any) -> None:
        """
        Insert or overwrite a value, evicting least recently used entries on overflow.

        Args:
            key: The key to store under.
            value: The value to cache.
        """
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        """
        Remove a key if present.

        Args:
            key: The key to remove.
        """
        with self._lock:
            self._data.pop(key, None)

    def delete_by_prefix(self, prefix: str) -> int:
        """
        Remove a key and every key below it.

        Args:
            prefix: Normalized directory path.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            doomed = [key for key in self._data if is_within(key, prefix)]
            for key in doomed:
                self._data.pop(key, None)
            return len(doomed)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._data = self._new_store()

    def statistics(self) -> CacheStatistics:
        """Snapshot of the cache for monitoring. Does not change recency."""
        with self._lock:
            return CacheStatistics(
                size=len(self._data),
                capacity=self.capacity,
                ttl_ms=self.ttl_ms,
                keys=tuple(self._data),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data
