"""
Shared pytest fixtures for cachedfs tests.
"""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cachedfs.cached import CachedFileSystem
from cachedfs.config import CacheConfig, ConnectionConfig, SSHConfig
from cachedfs.memory import AsyncMemoryFileSystem, MemoryFileSystem


class FakeTimer:
    """Manually advanced clock for TTL tests (seconds, like time.monotonic)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def memory_backend() -> MemoryFileSystem:
    """A fresh in-memory backend."""
    return MemoryFileSystem()


@pytest.fixture
def spy_backend(memory_backend: MemoryFileSystem) -> MagicMock:
    """
    MemoryFileSystem wrapped in a MagicMock so backend calls can be counted.

    Returns:
        Mock whose methods delegate to the real in-memory backend.
    """
    return MagicMock(wraps=memory_backend)


@pytest.fixture
def cached_fs(spy_backend: MagicMock, timer: FakeTimer) -> CachedFileSystem:
    """CachedFileSystem over the spied memory backend with a fake clock."""
    return CachedFileSystem(spy_backend, timer=timer)


@pytest.fixture
def async_memory_backend() -> AsyncMemoryFileSystem:
    return AsyncMemoryFileSystem()


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[backend]
type = sftp
root = /srv/data
encoding = latin-1

[ssh]
host = files.example.com
port = 2222
username = deploy
key_file = ~/.ssh/id_ed25519
use_agent = false

[cache]
enabled = true
max_size = 25
ttl_ms = 60000
cache_exists = false
cache_directory_listing = true

[connection]
timeout_seconds = 45
retry_attempts = 5
retry_delay_seconds = 2

[logging]
level = DEBUG
file = cachedfs.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def ssh_config() -> SSHConfig:
    """Creates a standard SSHConfig for testing."""
    return SSHConfig(
        host="test.ssh.local",
        port=22,
        username="testuser",
        key_file="/home/testuser/.ssh/id_rsa",
        use_agent=False,
    )


@pytest.fixture
def conn_config() -> ConnectionConfig:
    return ConnectionConfig(
        timeout_seconds=30,
        retry_attempts=3,
        retry_delay_seconds=0,  # No delay in tests
    )


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(enabled=True, max_size=10, ttl_ms=1000)
