"""
Unit tests for cachedfs.config module.

Tests cover:
- Loading configuration from INI files
- Defaults when no file is given
- CLI override precedence (CLI wins over INI)
- Validation of backend type, SFTP host and cache limits
- Missing config file handling
- Conversion of [cache] settings into CacheOptions
"""

from pathlib import Path

import pytest

from cachedfs.cached import CacheOptions
from cachedfs.config import (
    AppConfig,
    BackendConfig,
    CacheConfig,
    ConnectionConfig,
    LogConfig,
    SSHConfig,
    load_config,
)


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "cachedfs.ini"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadConfigWithINIFile:
    def test_reads_all_sections(self, tmp_config_file: Path):
        config = load_config(str(tmp_config_file))

        assert config.backend.type == "sftp"
        assert config.backend.root == "/srv/data"
        assert config.backend.encoding == "latin-1"

        assert config.ssh.host == "files.example.com"
        assert config.ssh.port == 2222
        assert config.ssh.username == "deploy"
        assert config.ssh.key_file == "~/.ssh/id_ed25519"
        assert config.ssh.use_agent is False

        assert config.cache.enabled is True
        assert config.cache.max_size == 25
        assert config.cache.ttl_ms == 60000
        assert config.cache.cache_exists is False
        assert config.cache.cache_directory_listing is True

        assert config.connection.timeout_seconds == 45
        assert config.connection.retry_attempts == 5
        assert config.connection.retry_delay_seconds == 2

        assert config.logging.level == "DEBUG"
        assert config.logging.file == "cachedfs.log"
        assert config.logging.console is False

    def test_returns_typed_sections(self, tmp_config_file: Path):
        config = load_config(str(tmp_config_file))

        assert isinstance(config, AppConfig)
        assert isinstance(config.backend, BackendConfig)
        assert isinstance(config.ssh, SSHConfig)
        assert isinstance(config.cache, CacheConfig)
        assert isinstance(config.connection, ConnectionConfig)
        assert isinstance(config.logging, LogConfig)

    def test_partial_file_keeps_defaults(self, tmp_path: Path):
        config = load_config(_write(tmp_path, "[backend]\ntype = local\nroot = ./data\n"))

        assert config.backend.type == "local"
        assert config.backend.root == "./data"
        assert config.cache.max_size == 100
        assert config.cache.ttl_ms == 300000
        assert config.ssh is None

    def test_backend_type_is_case_insensitive(self, tmp_path: Path):
        config = load_config(_write(tmp_path, "[backend]\ntype = MEMORY\n"))
        assert config.backend.type == "memory"


class TestDefaults:
    def test_no_file_no_args(self):
        config = load_config()

        assert config.backend == BackendConfig()
        assert config.cache == CacheConfig()
        assert config.connection == ConnectionConfig()
        assert config.logging == LogConfig()
        assert config.ssh is None

    def test_cache_defaults(self):
        cache = load_config().cache

        assert cache.enabled is True
        assert cache.max_size == 100
        assert cache.ttl_ms == 5 * 60 * 1000
        assert cache.cache_exists is True
        assert cache.cache_directory_listing is True


class TestCLIOverrides:
    def test_cli_only_sftp(self):
        config = load_config(
            backend="sftp",
            host="cli.server.com",
            port=2200,
            username="cliuser",
            password="clipass",
        )

        assert config.backend.type == "sftp"
        assert config.ssh.host == "cli.server.com"
        assert config.ssh.port == 2200
        assert config.ssh.username == "cliuser"
        assert config.ssh.password == "clipass"

    def test_cli_wins_over_file(self, tmp_config_file: Path):
        config = load_config(
            str(tmp_config_file),
            backend="local",
            root="/tmp/elsewhere",
            max_size=7,
            ttl_ms=0,
        )

        assert config.backend.type == "local"
        assert config.backend.root == "/tmp/elsewhere"
        assert config.cache.max_size == 7
        assert config.cache.ttl_ms == 0
        # Untouched values still come from the file
        assert config.ssh.port == 2222

    def test_none_values_do_not_override(self, tmp_config_file: Path):
        config = load_config(str(tmp_config_file), backend=None, host=None, max_size=None)

        assert config.backend.type == "sftp"
        assert config.ssh.host == "files.example.com"
        assert config.cache.max_size == 25

    def test_no_cache_disables_cache(self):
        assert load_config(no_cache=True).cache.enabled is False

    def test_debug_forces_debug_console_logging(self, tmp_config_file: Path):
        config = load_config(str(tmp_config_file), debug=True)

        assert config.logging.level == "DEBUG"
        assert config.logging.console is True


class TestValidation:
    def test_missing_file_raises(self, tmp_path: Path):
        missing = tmp_path / "nope.ini"
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(str(missing))

    def test_invalid_backend_type(self):
        with pytest.raises(ValueError, match="Invalid backend type: ftp"):
            load_config(backend="ftp")

    def test_sftp_requires_host(self):
        with pytest.raises(ValueError, match="Missing required configuration fields: host"):
            load_config(backend="sftp")

    @pytest.mark.parametrize("max_size", [0, -1])
    def test_non_positive_max_size(self, max_size):
        with pytest.raises(ValueError, match="Invalid max_size"):
            load_config(max_size=max_size)

    def test_negative_ttl(self):
        with pytest.raises(ValueError, match="Invalid ttl_ms"):
            load_config(ttl_ms=-5)

    def test_non_integer_in_file(self, tmp_path: Path):
        path = _write(tmp_path, "[cache]\nmax_size = lots\n")
        with pytest.raises(ValueError, match="Invalid max_size value in config: 'lots'"):
            load_config(path)

    def test_non_integer_ssh_port(self, tmp_path: Path):
        path = _write(tmp_path, "[ssh]\nhost = h\nport = twenty-two\n")
        with pytest.raises(ValueError, match="Invalid SSH port value"):
            load_config(path)


class TestCacheConfigToOptions:
    def test_to_options(self):
        options = CacheConfig(
            max_size=5, ttl_ms=10, cache_exists=False, cache_directory_listing=False
        ).to_options()

        assert options == CacheOptions(
            max_size=5, ttl_ms=10, cache_exists=False, cache_directory_listing=False
        )
