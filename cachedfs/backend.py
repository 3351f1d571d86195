"""
Backend protocol definitions.

Defines the interface every storage backend implements, allowing the cache
layer to wrap local, in-memory, or remote storage interchangeably.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass
class FileStats:
    """Standardized file statistics independent of backend"""

    name: str
    size: int
    mtime: datetime
    is_dir: bool

    @property
    def is_file(self) -> bool:
        return not self.is_dir


@runtime_checkable
class FileSystemBackend(Protocol):
    """Protocol defining the synchronous storage backend interface.

    Any class implementing these methods can be wrapped by CachedFileSystem,
    regardless of where the bytes actually live.
    """

    def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at path."""
        ...

    def read_file(self, path: str) -> str:
        """Read a whole file as text.

        Raises:
            FileNotFoundError: If path does not exist.
            IsADirectoryError: If path is a directory.
        """
        ...

    def write_file(self, path: str, data: str) -> None:
        """Write text to a file, creating missing parent directories."""
        ...

    def delete_file(self, path: str) -> None:
        """Delete a file. Deleting a missing file is not an error."""
        ...

    def list_dir(self, path: str) -> list[str]:
        """List immediate child names, sorted.

        Returns an empty list for an empty or missing directory.
        """
        ...

    def ensure_dir(self, path: str) -> None:
        """Create a directory (recursively if needed)."""
        ...

    def delete_dir(self, path: str) -> None:
        """Delete a directory and everything below it. Missing is not an error."""
        ...

    def stat(self, path: str) -> FileStats:
        """Get metadata for a single file or directory.

        Raises:
            FileNotFoundError: If path does not exist.
        """
        ...


@runtime_checkable
class AsyncFileSystemBackend(Protocol):
    """Asynchronous counterpart of FileSystemBackend.

    Same semantics, every operation is a coroutine.
    """

    async def exists(self, path: str) -> bool: ...

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, data: str) -> None: ...

    async def delete_file(self, path: str) -> None: ...

    async def list_dir(self, path: str) -> list[str]: ...

    async def ensure_dir(self, path: str) -> None: ...

    async def delete_dir(self, path: str) -> None: ...

    async def stat(self, path: str) -> FileStats: ...
