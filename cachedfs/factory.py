"""
Backend construction from configuration.
"""

import logging

from .cached import AsyncCachedFileSystem, CachedFileSystem
from .config import AppConfig
from .local import AsyncLocalFileSystem, LocalFileSystem
from .memory import AsyncMemoryFileSystem, MemoryFileSystem
from .sftp import SFTPFileSystem

logger = logging.getLogger(__name__)


def create_backend(config: AppConfig):
    """
    Build the synchronous backend named by config.backend.type.

    SFTP backends are returned unconnected; the caller owns connect/disconnect.
    """
    backend_type = config.backend.type
    if backend_type == "memory":
        return MemoryFileSystem()
    if backend_type == "local":
        return LocalFileSystem(config.backend.root, encoding=config.backend.encoding)
    if backend_type == "sftp":
        if config.ssh is None:
            raise ValueError("SFTP backend requires an [ssh] configuration with a host")
        return SFTPFileSystem(config.ssh, config.connection, root=config.backend.root)
    raise ValueError(f"Unknown backend type: {backend_type}")


def create_async_backend(config: AppConfig):
    """Build the asynchronous backend named by config.backend.type."""
    backend_type = config.backend.type
    if backend_type == "memory":
        return AsyncMemoryFileSystem()
    if backend_type == "local":
        return AsyncLocalFileSystem(config.backend.root, encoding=config.backend.encoding)
    raise ValueError(f"No asynchronous backend available for type: {backend_type}")


def open_filesystem(config: AppConfig, backend=None):
    """
    Return the filesystem the application should use: the backend, wrapped in
    CachedFileSystem unless caching is disabled.
    """
    backend = backend if backend is not None else create_backend(config)
    if not config.cache.enabled:
        logger.info("Cache disabled, using %s directly", type(backend).__name__)
        return backend
    return CachedFileSystem(backend, config.cache.to_options())


def open_async_filesystem(config: AppConfig, backend=None):
    """Async counterpart of open_filesystem."""
    backend = backend if backend is not None else create_async_backend(config)
    if not config.cache.enabled:
        logger.info("Cache disabled, using %s directly", type(backend).__name__)
        return backend
    return AsyncCachedFileSystem(backend, config.cache.to_options())
