"""
Caching decorator for filesystem backends.

Wraps any backend implementing the FileSystemBackend (or AsyncFileSystemBackend)
protocol and keeps three bounded LRU/TTL caches in front of it: file content,
existence checks and directory listings. The backend stays authoritative: every
write and delete reaches it first, and the caches are only updated after it
succeeded.
"""

import inspect
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from functools import wraps
from typing import Any

from .backend import AsyncFileSystemBackend, FileStats, FileSystemBackend
from .cache import BoundedCache, CacheStatistics, ancestor_paths, normalize_path, parent_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheOptions:
    max_size: int = 100
    ttl_ms: int = 5 * 60 * 1000
    cache_exists: bool = True
    cache_directory_listing: bool = True


@dataclass(frozen=True)
class FileSystemCacheStatistics:
    content: CacheStatistics
    existence: CacheStatistics
    directory: CacheStatistics
    options: CacheOptions


def operation(fn):
    """Decorator for cached operations - provides thread safety and logging."""
    name = fn.__name__

    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._thread_lock:
            try:
                result = fn(self, *args, **kwargs)
                logger.debug("%s: OK", name)
                return result
            except Exception as exc:
                logger.debug("%s: FAIL - %s", name, exc)
                raise

    return wrapper


def async_operation(fn):
    """Async counterpart of operation; one event loop owns the instance, so no lock."""
    name = fn.__name__

    @wraps(fn)
    async def wrapper(self, *args, **kwargs):
        try:
            result = await fn(self, *args, **kwargs)
            logger.debug("%s: OK", name)
            return result
        except Exception as exc:
            logger.debug("%s: FAIL - %s", name, exc)
            raise

    return wrapper


class _CacheCoordinator:
    """Cache state and invalidation rules shared by the sync and async wrappers."""

    def __init__(
        self,
        backend,
        options: CacheOptions | None = None,
        timer: Callable[[], float] = time.monotonic,
        **overrides,
    ):
        options = options or CacheOptions()
        if overrides:
            options = replace(options, **overrides)
        self._backend = backend
        self.options = options
        self._content = BoundedCache(options.max_size, options.ttl_ms, timer)
        self._existence = BoundedCache(options.max_size, options.ttl_ms, timer)
        self._listings = BoundedCache(options.max_size, options.ttl_ms, timer)
        # Bumped by every mutation and invalidation
        self._generation = 0
        logger.info(
            "%s initialized: max_size=%d, ttl_ms=%d, cache_exists=%s, cache_directory_listing=%s",
            type(self).__name__,
            options.max_size,
            options.ttl_ms,
            options.cache_exists,
            options.cache_directory_listing,
        )

    @property
    def backend(self):
        """The wrapped backend. Not owned by the cache."""
        return self._backend

    def _remember_exists(self, key: str, exists: bool) -> None:
        if self.options.cache_exists:
            self._existence.put(key, exists)

    def _after_read(self, key: str, content: str) -> None:
        self._content.put(key, content)
        self._remember_exists(key, True)

    def _is_current(self, generation: int) -> bool:
        """True if nothing was written or invalidated since generation was taken."""
        return generation == self._generation

    def _after_write(self, key: str, data: str) -> None:
        self._generation += 1
        self._content.put(key, data)
        self._remember_exists(key, True)
        self._forget_ancestors(key)

    def _after_delete(self, key: str) -> None:
        self._generation += 1
        self._content.delete(key)
        self._remember_exists(key, False)
        self._listings.delete(parent_path(key))

    def _after_ensure_dir(self, key: str) -> None:
        self._generation += 1
        # A new directory may also have created missing parents
        self._existence.delete(key)
        self._forget_ancestors(key)

    def _forget_ancestors(self, key: str) -> None:
        for ancestor in ancestor_paths(key):
            self._existence.delete(ancestor)
            self._listings.delete(ancestor)

    def _invalidate_file(self, key: str) -> None:
        self._generation += 1
        self._content.delete(key)
        self._existence.delete(key)
        self._listings.delete(parent_path(key))

    def _invalidate_directory(self, key: str) -> int:
        self._generation += 1
        removed = self._content.delete_by_prefix(key)
        removed += self._existence.delete_by_prefix(key)
        removed += self._listings.delete_by_prefix(key)
        logger.debug("Invalidated %d cache entries under %s", removed, key)
        return removed

    def _clear_cache(self) -> None:
        self._generation += 1
        self._content.clear()
        self._existence.clear()
        self._listings.clear()
        logger.debug("All caches cleared")

    def _statistics(self) -> FileSystemCacheStatistics:
        return FileSystemCacheStatistics(
            content=self._content.statistics(),
            existence=self._existence.statistics(),
            directory=self._listings.statistics(),
            options=self.options,
        )


class CachedFileSystem(_CacheCoordinator):
    """
    Caching wrapper around a synchronous FileSystemBackend.

    A cache hit and a cache miss return the same value and raise the same
    errors; only latency differs. Backend errors are never swallowed and never
    cached.
    """

    def __init__(
        self,
        backend: FileSystemBackend,
        options: CacheOptions | None = None,
        timer: Callable[[], float] = time.monotonic,
        **overrides,
    ):
        self._thread_lock = threading.RLock()
        super().__init__(backend, options, timer, **overrides)

    @operation
    def exists(self, path: str) -> bool:
        """Check existence, caching negative answers too."""
        if not self.options.cache_exists:
            return self._backend.exists(path)

        key = normalize_path(path)
        cached = self._existence.get(key)
        if cached is not None:
            return cached

        exists = self._backend.exists(path)
        self._existence.put(key, exists)
        return exists

    @operation
    def read_file(self, path: str) -> str:
        key = normalize_path(path)
        cached = self._content.get(key)
        if cached is not None:
            return cached

        content = self._backend.read_file(path)
        self._after_read(key, content)
        return content

    @operation
    def write_file(self, path: str, data: str) -> None:
        """Write through: the backend first, then the cache gets exactly data."""
        self._backend.write_file(path, data)
        self._after_write(normalize_path(path), data)

    @operation
    def delete_file(self, path: str) -> None:
        """Delete and remember the path as absent."""
        self._backend.delete_file(path)
        self._after_delete(normalize_path(path))

    @operation
    def list_dir(self, path: str) -> list[str]:
        if not self.options.cache_directory_listing:
            return self._backend.list_dir(path)

        key = normalize_path(path)
        cached = self._listings.get(key)
        if cached is not None:
            return list(cached)

        entries = self._backend.list_dir(path)
        self._listings.put(key, tuple(entries))
        return list(entries)

    @operation
    def ensure_dir(self, path: str) -> None:
        self._backend.ensure_dir(path)
        self._after_ensure_dir(normalize_path(path))

    @operation
    def delete_dir(self, path: str) -> None:
        self._backend.delete_dir(path)
        key = normalize_path(path)
        self._invalidate_directory(key)
        self._listings.delete(parent_path(key))

    @operation
    def stat(self, path: str) -> FileStats:
        return self._backend.stat(path)

    @operation
    def chmod(self, path: str, mode: int) -> None:
        # Permissions do not affect content or existence
        chmod = getattr(self._backend, "chmod", None)
        if chmod is None:
            raise NotImplementedError(f"{type(self._backend).__name__} does not support chmod")
        chmod(path, mode)

    @operation
    def clear(self, path: str) -> None:
        """Remove everything below a directory in the backend and the caches."""
        clear = getattr(self._backend, "clear", None)
        if clear is None:
            raise NotImplementedError(f"{type(self._backend).__name__} does not support clear")
        clear(path)
        self._invalidate_directory(normalize_path(path))

    @operation
    def invalidate_file(self, path: str) -> None:
        """Forget everything cached about a file changed outside this process."""
        self._invalidate_file(normalize_path(path))

    @operation
    def invalidate_directory(self, path: str) -> None:
        """Forget everything cached at or below a directory."""
        self._invalidate_directory(normalize_path(path))

    @operation
    def clear_cache(self) -> None:
        self._clear_cache()

    @operation
    def get_cache_statistics(self) -> FileSystemCacheStatistics:
        """Read-only snapshot for monitoring and tests."""
        return self._statistics()


class AsyncCachedFileSystem(_CacheCoordinator):
    """
    Caching wrapper around an AsyncFileSystemBackend.

    Suspends only while awaiting the backend; cache reads and updates never
    await. A read-through result is stored only if no mutation or
    invalidation completed while the backend call was pending, so a stale
    fetch never replaces a newer write-through entry.
    """

    def __init__(
        self,
        backend: AsyncFileSystemBackend,
        options: CacheOptions | None = None,
        timer: Callable[[], float] = time.monotonic,
        **overrides,
    ):
        super().__init__(backend, options, timer, **overrides)

    @async_operation
    async def exists(self, path: str) -> bool:
        if not self.options.cache_exists:
            return await self._backend.exists(path)

        key = normalize_path(path)
        cached = self._existence.get(key)
        if cached is not None:
            return cached

        generation = self._generation
        exists = await self._backend.exists(path)
        if self._is_current(generation):
            self._existence.put(key, exists)
        return exists

    @async_operation
    async def read_file(self, path: str) -> str:
        key = normalize_path(path)
        cached = self._content.get(key)
        if cached is not None:
            return cached

        generation = self._generation
        content = await self._backend.read_file(path)
        if self._is_current(generation):
            self._after_read(key, content)
        return content

    @async_operation
    async def write_file(self, path: str, data: str) -> None:
        await self._backend.write_file(path, data)
        self._after_write(normalize_path(path), data)

    @async_operation
    async def delete_file(self, path: str) -> None:
        await self._backend.delete_file(path)
        self._after_delete(normalize_path(path))

    @async_operation
    async def list_dir(self, path: str) -> list[str]:
        if not self.options.cache_directory_listing:
            return await self._backend.list_dir(path)

        key = normalize_path(path)
        cached = self._listings.get(key)
        if cached is not None:
            return list(cached)

        generation = self._generation
        entries = await self._backend.list_dir(path)
        if self._is_current(generation):
            self._listings.put(key, tuple(entries))
        return list(entries)

    @async_operation
    async def ensure_dir(self, path: str) -> None:
        await self._backend.ensure_dir(path)
        self._after_ensure_dir(normalize_path(path))

    @async_operation
    async def delete_dir(self, path: str) -> None:
        await self._backend.delete_dir(path)
        key = normalize_path(path)
        self._invalidate_directory(key)
        self._listings.delete(parent_path(key))

    @async_operation
    async def stat(self, path: str) -> FileStats:
        return await self._backend.stat(path)

    @async_operation
    async def chmod(self, path: str, mode: int) -> None:
        chmod = getattr(self._backend, "chmod", None)
        if chmod is None:
            raise NotImplementedError(f"{type(self._backend).__name__} does not support chmod")
        await chmod(path, mode)

    @async_operation
    async def clear(self, path: str) -> None:
        clear = getattr(self._backend, "clear", None)
        if clear is None:
            raise NotImplementedError(f"{type(self._backend).__name__} does not support clear")
        await clear(path)
        self._invalidate_directory(normalize_path(path))

    def invalidate_file(self, path: str) -> None:
        self._invalidate_file(normalize_path(path))

    def invalidate_directory(self, path: str) -> None:
        self._invalidate_directory(normalize_path(path))

    def clear_cache(self) -> None:
        self._clear_cache()

    def get_cache_statistics(self) -> FileSystemCacheStatistics:
        return self._statistics()


def create_cached_filesystem(backend: Any, options: CacheOptions | None = None, **overrides):
    """
    Wrap a backend in the matching cache layer.

    Async backends (coroutine read_file) get AsyncCachedFileSystem, everything
    else CachedFileSystem.
    """
    if inspect.iscoroutinefunction(getattr(backend, "read_file", None)):
        return AsyncCachedFileSystem(backend, options, **overrides)
    return CachedFileSystem(backend, options, **overrides)
