import configparser
from dataclasses import dataclass, field
from pathlib import Path

from .cached import CacheOptions

BACKEND_TYPES = ("memory", "local", "sftp")


@dataclass
class BackendConfig:
    type: str = "memory"  # "memory", "local" or "sftp"
    root: str = "."  # Base directory for local and sftp backends
    encoding: str = "utf-8"


@dataclass
class SSHConfig:
    host: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    key_file: str | None = None  # Path to SSH private key
    key_passphrase: str | None = None  # Passphrase for encrypted keys
    use_agent: bool = True  # Try SSH agent for auth
    encoding: str = "utf-8"


@dataclass
class CacheConfig:
    enabled: bool = True
    max_size: int = 100
    ttl_ms: int = 5 * 60 * 1000  # 0 disables expiry
    cache_exists: bool = True
    cache_directory_listing: bool = True

    def to_options(self) -> CacheOptions:
        return CacheOptions(
            max_size=self.max_size,
            ttl_ms=self.ttl_ms,
            cache_exists=self.cache_exists,
            cache_directory_listing=self.cache_directory_listing,
        )


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    retry_attempts: int = 3
    retry_delay_seconds: int = 1


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = ""
    console: bool = True


@dataclass
class AppConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    ssh: SSHConfig | None = None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _parse_int(section: configparser.SectionProxy, key: str, label: str | None = None) -> int:
    raw = section.get(key)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {label or key} value in config: '{raw}' - must be an integer"
        ) from None


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments.

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If a value is malformed or a required field is missing.
    """
    # Initialize with defaults
    backend_config = {
        "type": "memory",
        "root": ".",
        "encoding": "utf-8",
    }
    cache_config = {
        "enabled": True,
        "max_size": 100,
        "ttl_ms": 5 * 60 * 1000,
        "cache_exists": True,
        "cache_directory_listing": True,
    }
    connection_config = {
        "timeout_seconds": 30,
        "retry_attempts": 3,
        "retry_delay_seconds": 1,
    }
    log_config = {
        "level": "INFO",
        "file": "",
        "console": True,
    }
    ssh_config = {
        "host": None,
        "port": 22,
        "username": None,
        "password": None,
        "key_file": None,
        "key_passphrase": None,
        "use_agent": True,
        "encoding": "utf-8",
    }

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [backend] section
        if parser.has_section("backend"):
            backend_section = parser["backend"]
            if backend_section.get("type"):
                backend_config["type"] = backend_section.get("type").lower()
            if backend_section.get("root"):
                backend_config["root"] = backend_section.get("root")
            if backend_section.get("encoding"):
                backend_config["encoding"] = backend_section.get("encoding")

        # Load [cache] section
        if parser.has_section("cache"):
            cache_section = parser["cache"]
            for key in ("enabled", "cache_exists", "cache_directory_listing"):
                if cache_section.get(key):
                    cache_config[key] = _parse_bool(cache_section.get(key))
            for key in ("max_size", "ttl_ms"):
                if cache_section.get(key):
                    cache_config[key] = _parse_int(cache_section, key)

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            for key in ("timeout_seconds", "retry_attempts", "retry_delay_seconds"):
                if conn_section.get(key):
                    connection_config[key] = _parse_int(conn_section, key)

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if log_section.get("file"):
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = _parse_bool(log_section.get("console"))

        # Load [ssh] section
        if parser.has_section("ssh"):
            ssh_section = parser["ssh"]
            for key in ("host", "username", "password", "key_file", "key_passphrase", "encoding"):
                if ssh_section.get(key):
                    ssh_config[key] = ssh_section.get(key)
            if ssh_section.get("port"):
                ssh_config["port"] = _parse_int(ssh_section, "port", "SSH port")
            if ssh_section.get("use_agent"):
                ssh_config["use_agent"] = _parse_bool(ssh_section.get("use_agent"))

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("backend") is not None:
        backend_config["type"] = cli_args["backend"].lower()
    if cli_args.get("root") is not None:
        backend_config["root"] = cli_args["root"]
    if cli_args.get("host") is not None:
        ssh_config["host"] = cli_args["host"]
    if cli_args.get("port") is not None:
        ssh_config["port"] = int(cli_args["port"])
    if cli_args.get("username") is not None:
        ssh_config["username"] = cli_args["username"] or None
    if cli_args.get("password") is not None:
        ssh_config["password"] = cli_args["password"] or None
    if cli_args.get("key_file") is not None:
        ssh_config["key_file"] = cli_args["key_file"]
    if cli_args.get("key_passphrase") is not None:
        ssh_config["key_passphrase"] = cli_args["key_passphrase"]
    if cli_args.get("no_cache"):
        cache_config["enabled"] = False
    if cli_args.get("max_size") is not None:
        cache_config["max_size"] = int(cli_args["max_size"])
    if cli_args.get("ttl_ms") is not None:
        cache_config["ttl_ms"] = int(cli_args["ttl_ms"])
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    # Validate
    if backend_config["type"] not in BACKEND_TYPES:
        raise ValueError(
            f"Invalid backend type: {backend_config['type']}. "
            f"Must be one of: {', '.join(BACKEND_TYPES)}"
        )
    if backend_config["type"] == "sftp" and not ssh_config["host"]:
        raise ValueError("Missing required configuration fields: host")
    if cache_config["max_size"] <= 0:
        raise ValueError(f"Invalid max_size: {cache_config['max_size']}. Must be positive.")
    if cache_config["ttl_ms"] < 0:
        raise ValueError(f"Invalid ttl_ms: {cache_config['ttl_ms']}. Must not be negative.")

    # Build SSH config object if a host is known
    ssh_obj = None
    if ssh_config["host"]:
        ssh_obj = SSHConfig(**ssh_config)

    return AppConfig(
        backend=BackendConfig(**backend_config),
        cache=CacheConfig(**cache_config),
        connection=ConnectionConfig(**connection_config),
        logging=LogConfig(**log_config),
        ssh=ssh_obj,
    )
