"""
Local disk filesystem backend.

All paths are resolved below a root directory, so "/docs/a.txt" and
"docs/a.txt" name the same file on disk.
"""

import asyncio
import logging
import shutil
from datetime import datetime
from pathlib import Path

from .backend import FileStats
from .cache import normalize_path

logger = logging.getLogger(__name__)


class LocalFileSystem:
    """FileSystemBackend backed by the local disk."""

    def __init__(self, root: str | Path = ".", encoding: str = "utf-8"):
        self.root = Path(root)
        self.encoding = encoding

    def _resolve(self, path: str) -> Path:
        relative = normalize_path(path)
        if relative == ".." or relative.startswith("../"):
            raise PermissionError(f"Path escapes filesystem root: {path}")
        if relative == ".":
            return self.root
        return self.root / relative

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        logger.debug("Reading file: %s", target)
        return target.read_text(encoding=self.encoding)

    def write_file(self, path: str, data: str) -> None:
        target = self._resolve(path)
        logger.debug("Writing file: %s (%d chars)", target, len(data))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(data, encoding=self.encoding)

    def delete_file(self, path: str) -> None:
        target = self._resolve(path)
        logger.debug("Deleting file: %s", target)
        target.unlink(missing_ok=True)

    def list_dir(self, path: str) -> list[str]:
        target = self._resolve(path)
        if not target.exists():
            return []
        return sorted(child.name for child in target.iterdir())

    def ensure_dir(self, path: str) -> None:
        target = self._resolve(path)
        logger.debug("Creating directory: %s", target)
        target.mkdir(parents=True, exist_ok=True)

    def delete_dir(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists():
            return
        if not target.is_dir():
            raise NotADirectoryError(f"Not a directory: {path}")
        logger.debug("Deleting directory: %s", target)
        if target == self.root:
            self._clear_children(target)
        else:
            shutil.rmtree(target)

    def clear(self, path: str) -> None:
        """Remove everything below a directory, keeping the directory itself."""
        target = self._resolve(path)
        if target.is_dir():
            self._clear_children(target)

    def stat(self, path: str) -> FileStats:
        target = self._resolve(path)
        st = target.stat()
        is_dir = target.is_dir()
        return FileStats(
            name=target.name or str(target),
            size=0 if is_dir else st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime),
            is_dir=is_dir,
        )

    def chmod(self, path: str, mode: int) -> None:
        self._resolve(path).chmod(mode)

    @staticmethod
    def _clear_children(directory: Path) -> None:
        for child in directory.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()


class AsyncLocalFileSystem:
    """AsyncFileSystemBackend that runs LocalFileSystem calls in worker threads."""

    def __init__(self, root: str | Path = ".", encoding: str = "utf-8"):
        self.sync = LocalFileSystem(root, encoding)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self.sync.exists, path)

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(self.sync.read_file, path)

    async def write_file(self, path: str, data: str) -> None:
        await asyncio.to_thread(self.sync.write_file, path, data)

    async def delete_file(self, path: str) -> None:
        await asyncio.to_thread(self.sync.delete_file, path)

    async def list_dir(self, path: str) -> list[str]:
        return await asyncio.to_thread(self.sync.list_dir, path)

    async def ensure_dir(self, path: str) -> None:
        await asyncio.to_thread(self.sync.ensure_dir, path)

    async def delete_dir(self, path: str) -> None:
        await asyncio.to_thread(self.sync.delete_dir, path)

    async def clear(self, path: str) -> None:
        await asyncio.to_thread(self.sync.clear, path)

    async def stat(self, path: str) -> FileStats:
        return await asyncio.to_thread(self.sync.stat, path)

    async def chmod(self, path: str, mode: int) -> None:
        await asyncio.to_thread(self.sync.chmod, path, mode)
