"""
In-memory filesystem backend.

Useful for tests and development: keeps files and directories in
process-local dictionaries with no persistence.
"""

import logging
import threading
from datetime import datetime

from .backend import FileStats
from .cache import ancestor_paths, is_within, normalize_path, parent_path

logger = logging.getLogger(__name__)


class MemoryFileSystem:
    """Thread-safe in-memory implementation of FileSystemBackend."""

    def __init__(self):
        self._lock = threading.Lock()
        # path -> (content, mtime)
        self._files: dict[str, tuple[str, datetime]] = {}
        # path -> mtime
        self._dirs: dict[str, datetime] = {".": datetime.now()}

    def exists(self, path: str) -> bool:
        path = normalize_path(path)
        with self._lock:
            return path in self._files or path in self._dirs

    def read_file(self, path: str) -> str:
        path = normalize_path(path)
        with self._lock:
            if path in self._dirs:
                raise IsADirectoryError(f"Is a directory: {path}")
            try:
                return self._files[path][0]
            except KeyError:
                raise FileNotFoundError(f"No such file or directory: {path}") from None

    def write_file(self, path: str, data: str) -> None:
        path = normalize_path(path)
        logger.debug("Writing file: %s (%d chars)", path, len(data))
        with self._lock:
            if path in self._dirs:
                raise IsADirectoryError(f"Is a directory: {path}")
            self._make_parents(path)
            self._files[path] = (data, datetime.now())

    def delete_file(self, path: str) -> None:
        path = normalize_path(path)
        with self._lock:
            if path in self._dirs:
                raise IsADirectoryError(f"Is a directory: {path}")
            self._files.pop(path, None)

    def list_dir(self, path: str) -> list[str]:
        path = normalize_path(path)
        with self._lock:
            if path in self._files:
                raise NotADirectoryError(f"Not a directory: {path}")
            names = {
                child.rsplit("/", 1)[-1]
                for child in (*self._files, *self._dirs)
                if child != path and parent_path(child) == path
            }
            return sorted(names)

    def ensure_dir(self, path: str) -> None:
        path = normalize_path(path)
        with self._lock:
            if path in self._files:
                raise FileExistsError(f"File exists: {path}")
            self._make_parents(path)
            self._dirs.setdefault(path, datetime.now())

    def delete_dir(self, path: str) -> None:
        path = normalize_path(path)
        with self._lock:
            if path in self._files:
                raise NotADirectoryError(f"Not a directory: {path}")
            self._remove_below(path)
            if path != ".":
                self._dirs.pop(path, None)

    def clear(self, path: str) -> None:
        """Remove everything below a directory, keeping the directory itself."""
        path = normalize_path(path)
        with self._lock:
            self._remove_below(path)

    def stat(self, path: str) -> FileStats:
        path = normalize_path(path)
        name = path.rsplit("/", 1)[-1]
        with self._lock:
            if path in self._dirs:
                return FileStats(name=name, size=0, mtime=self._dirs[path], is_dir=True)
            if path in self._files:
                content, mtime = self._files[path]
                return FileStats(
                    name=name, size=len(content.encode("utf-8")), mtime=mtime, is_dir=False
                )
        raise FileNotFoundError(f"No such file or directory: {path}")

    def chmod(self, path: str, mode: int) -> None:
        # Permissions are not modelled; only existence is checked
        if not self.exists(path):
            raise FileNotFoundError(f"No such file or directory: {normalize_path(path)}")

    def _make_parents(self, path: str) -> None:
        """Create missing ancestor directories. Caller must hold lock."""
        for ancestor in ancestor_paths(path):
            if ancestor in self._files:
                raise NotADirectoryError(f"Not a directory: {ancestor}")
            self._dirs.setdefault(ancestor, datetime.now())

    def _remove_below(self, path: str) -> None:
        """Remove files and directories strictly below path. Caller must hold lock."""
        for key in [k for k in self._files if k != path and is_within(k, path)]:
            del self._files[key]
        for key in [k for k in self._dirs if k != path and is_within(k, path)]:
            del self._dirs[key]


class AsyncMemoryFileSystem:
    """AsyncFileSystemBackend over an in-memory store.

    Operations complete immediately; they are coroutines so async callers can
    be exercised without network backends.
    """

    def __init__(self, store: MemoryFileSystem | None = None):
        self.store = store or MemoryFileSystem()

    async def exists(self, path: str) -> bool:
        return self.store.exists(path)

    async def read_file(self, path: str) -> str:
        return self.store.read_file(path)

    async def write_file(self, path: str, data: str) -> None:
        self.store.write_file(path, data)

    async def delete_file(self, path: str) -> None:
        self.store.delete_file(path)

    async def list_dir(self, path: str) -> list[str]:
        return self.store.list_dir(path)

    async def ensure_dir(self, path: str) -> None:
        self.store.ensure_dir(path)

    async def delete_dir(self, path: str) -> None:
        self.store.delete_dir(path)

    async def clear(self, path: str) -> None:
        self.store.clear(path)

    async def stat(self, path: str) -> FileStats:
        return self.store.stat(path)

    async def chmod(self, path: str, mode: int) -> None:
        self.store.chmod(path, mode)
