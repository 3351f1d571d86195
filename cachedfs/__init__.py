__version__ = "0.1.0"

# Public API exports
from .backend import AsyncFileSystemBackend, FileStats, FileSystemBackend
from .cache import BoundedCache, CacheStatistics, normalize_path
from .cached import (
    AsyncCachedFileSystem,
    CachedFileSystem,
    CacheOptions,
    FileSystemCacheStatistics,
    create_cached_filesystem,
)
from .config import (
    AppConfig,
    BackendConfig,
    CacheConfig,
    ConnectionConfig,
    LogConfig,
    SSHConfig,
    load_config,
)
from .factory import create_backend, open_async_filesystem, open_filesystem
from .local import AsyncLocalFileSystem, LocalFileSystem
from .memory import AsyncMemoryFileSystem, MemoryFileSystem
from .sftp import SFTPFileSystem

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "BackendConfig",
    "CacheConfig",
    "ConnectionConfig",
    "LogConfig",
    "SSHConfig",
    "load_config",
    # Backends
    "FileSystemBackend",
    "AsyncFileSystemBackend",
    "FileStats",
    "MemoryFileSystem",
    "AsyncMemoryFileSystem",
    "LocalFileSystem",
    "AsyncLocalFileSystem",
    "SFTPFileSystem",
    "create_backend",
    # Cache
    "BoundedCache",
    "CacheStatistics",
    "CacheOptions",
    "FileSystemCacheStatistics",
    "CachedFileSystem",
    "AsyncCachedFileSystem",
    "create_cached_filesystem",
    "normalize_path",
    "open_filesystem",
    "open_async_filesystem",
]
