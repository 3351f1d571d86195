"""
SFTP filesystem backend using paramiko.

Implements the FileSystemBackend protocol over SSH/SFTP so remote storage can
sit behind CachedFileSystem like any local backend.
"""

import logging
import os
import posixpath
import stat
import threading
import time
from datetime import datetime
from pathlib import Path

import paramiko

from .backend import FileStats
from .cache import normalize_path
from .config import ConnectionConfig, SSHConfig

logger = logging.getLogger(__name__)


class TrustOnFirstUsePolicy(paramiko.MissingHostKeyPolicy):
    """
    Trust-on-first-use host key policy (same model as OpenSSH).

    - Unknown host: accept and save key to ~/.ssh/known_hosts
    - Known host, same key: accept
    - Known host, CHANGED key: reject (possible MITM attack)
    """

    def __init__(self, known_hosts_path: Path | None = None):
        self._known_hosts_path = known_hosts_path or Path.home() / ".ssh" / "known_hosts"

    def missing_host_key(self, client, hostname, key):
        host_keys = client.get_host_keys()
        existing = host_keys.lookup(hostname)

        if existing is not None:
            key_type = key.get_name()
            existing_key = existing.get(key_type)
            if existing_key is not None and existing_key != key:
                raise paramiko.SSHException(
                    f"Host key for {hostname} has CHANGED. "
                    f"This could indicate a man-in-the-middle attack. "
                    f"If the server key was legitimately changed, remove the old "
                    f"entry from {self._known_hosts_path} and try again."
                )

        logger.info("Adding host key for %s to known_hosts", hostname)
        host_keys.add(hostname, key.get_name(), key)

        try:
            self._known_hosts_path.parent.mkdir(parents=True, exist_ok=True)
            host_keys.save(str(self._known_hosts_path))
        except OSError as e:
            logger.warning("Could not save known_hosts: %s", e)


class SFTPFileSystem:
    """
    FileSystemBackend over paramiko's SSH/SFTP with connection management
    and retry logic. Paths are resolved below root on the server.
    """

    def __init__(self, ssh_config: SSHConfig, conn_config: ConnectionConfig, root: str = "/"):
        self.ssh_config = ssh_config
        self.conn_config = conn_config
        self.root = posixpath.normpath("/" + root.replace("\\", "/").lstrip("/"))
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        self._lock = threading.Lock()
        self._connected = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    def connect(self) -> None:
        """Establish SSH connection and open SFTP session."""
        with self._lock:
            self._connect_internal()

    def _connect_internal(self) -> None:
        """Internal connect without lock - caller must hold lock."""
        try:
            self._ssh = paramiko.SSHClient()
            self._ssh.load_system_host_keys()
            try:
                self._ssh.load_host_keys(str(Path.home() / ".ssh" / "known_hosts"))
            except FileNotFoundError:
                pass
            self._ssh.set_missing_host_key_policy(TrustOnFirstUsePolicy())

            connect_kwargs: dict = {
                "hostname": self.ssh_config.host,
                "port": self.ssh_config.port,
                "timeout": self.conn_config.timeout_seconds,
                "allow_agent": self.ssh_config.use_agent,
            }
            if self.ssh_config.username:
                connect_kwargs["username"] = self.ssh_config.username

            # Auth priority: key file -> password -> agent/default keys
            if self.ssh_config.key_file:
                connect_kwargs["key_filename"] = os.path.expanduser(self.ssh_config.key_file)
                if self.ssh_config.key_passphrase:
                    connect_kwargs["passphrase"] = self.ssh_config.key_passphrase
                connect_kwargs["look_for_keys"] = True
                auth = "key file"
            elif self.ssh_config.password:
                connect_kwargs["password"] = self.ssh_config.password
                connect_kwargs["look_for_keys"] = False
                auth = "password"
            else:
                connect_kwargs["look_for_keys"] = True
                auth = "agent/default keys"
            logger.debug(
                "Connecting to SSH %s:%d with %s",
                self.ssh_config.host,
                self.ssh_config.port,
                auth,
            )

            self._ssh.connect(**connect_kwargs)
            self._sftp = self._ssh.open_sftp()
            self._connected = True
            logger.info("Connected to SSH server %s:%d", self.ssh_config.host, self.ssh_config.port)

        except paramiko.AuthenticationException as e:
            self._connected = False
            self._cleanup_connections()
            logger.error("SSH authentication failed: %s", e)
            raise PermissionError(f"SSH authentication failed: {e}") from e
        except TimeoutError as e:
            self._connected = False
            self._cleanup_connections()
            logger.error("SSH connection timeout: %s", e)
            raise TimeoutError(f"SSH connection timeout: {e}") from e
        except (OSError, paramiko.SSHException) as e:
            self._connected = False
            self._cleanup_connections()
            logger.error("SSH connection failed: %s", e)
            raise ConnectionError(f"SSH connection failed: {e}") from e

    def _cleanup_connections(self) -> None:
        """Close SFTP and SSH, logging rather than raising."""
        for name in ("_sftp", "_ssh"):
            handle = getattr(self, name)
            if handle is not None:
                try:
                    handle.close()
                except Exception as e:
                    logger.debug("Error closing %s: %s", name.lstrip("_"), e)
                setattr(self, name, None)

    def disconnect(self) -> None:
        """Close SFTP session and SSH connection."""
        with self._lock:
            self._cleanup_connections()
            self._connected = False
            logger.debug("SSH connection closed")

    def _ensure_connected(self) -> None:
        """Ensure connection is active, reconnect if needed. Caller must hold lock."""
        if not self._connected or not self._sftp or not self._ssh:
            logger.debug("SSH connection not active, reconnecting")
            self._connect_internal()
            return

        transport = self._ssh.get_transport()
        if transport is None or not transport.is_active():
            logger.debug("SSH transport lost, reconnecting")
            self._cleanup_connections()
            self._connected = False
            self._connect_internal()

    def _remote_path(self, path: str) -> str:
        relative = normalize_path(path)
        if relative == ".." or relative.startswith("../"):
            raise PermissionError(f"Path escapes filesystem root: {path}")
        if relative == ".":
            return self.root
        return posixpath.join(self.root, relative)

    def _with_retry(self, operation: str, func, *args, **kwargs):
        """Execute a function with retry logic. Not-found and denied errors are final."""
        last_exception = None

        for attempt in range(self.conn_config.retry_attempts):
            try:
                with self._lock:
                    self._ensure_connected()
                    return func(*args, **kwargs)
            except (FileNotFoundError, PermissionError, IsADirectoryError, NotADirectoryError):
                raise
            except (TimeoutError, OSError, ConnectionError, paramiko.SSHException) as e:
                last_exception = e
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    operation,
                    attempt + 1,
                    self.conn_config.retry_attempts,
                    e,
                )

                if attempt < self.conn_config.retry_attempts - 1:
                    time.sleep(self.conn_config.retry_delay_seconds)
                    with self._lock:
                        self._cleanup_connections()
                        self._connected = False

        logger.error("%s failed after %d attempts", operation, self.conn_config.retry_attempts)
        raise OSError(f"{operation} failed: {last_exception}") from last_exception

    def _stat_or_none(self, remote: str):
        """SFTP attributes for remote, or None if it does not exist. Caller must hold lock."""
        try:
            return self._sftp.stat(remote)
        except FileNotFoundError:
            return None

    def exists(self, path: str) -> bool:
        remote = self._remote_path(path)
        return self._with_retry(f"exists({remote})", lambda: self._stat_or_none(remote) is not None)

    def read_file(self, path: str) -> str:
        remote = self._remote_path(path)
        logger.debug("Reading file: %s", remote)

        def _read_file_internal() -> str:
            attr = self._sftp.stat(remote)
            if attr.st_mode and stat.S_ISDIR(attr.st_mode):
                raise IsADirectoryError(f"Is a directory: {remote}")
            with self._sftp.open(remote, "rb") as f:
                data = f.read()
            logger.debug("Read %d bytes from %s", len(data), remote)
            return data.decode(self.ssh_config.encoding)

        return self._with_retry(f"read_file({remote})", _read_file_internal)

    def write_file(self, path: str, data: str) -> None:
        remote = self._remote_path(path)
        payload = data.encode(self.ssh_config.encoding)
        logger.debug("Writing file: %s (%d bytes)", remote, len(payload))

        def _write_file_internal() -> None:
            self._make_dirs(posixpath.dirname(remote))
            with self._sftp.open(remote, "wb") as f:
                f.write(payload)
            logger.debug("Wrote %d bytes to %s", len(payload), remote)

        self._with_retry(f"write_file({remote})", _write_file_internal)

    def delete_file(self, path: str) -> None:
        remote = self._remote_path(path)
        logger.debug("Deleting file: %s", remote)

        def _delete_file_internal() -> None:
            try:
                self._sftp.remove(remote)
            except FileNotFoundError:
                logger.debug("File already absent: %s", remote)

        self._with_retry(f"delete_file({remote})", _delete_file_internal)

    def list_dir(self, path: str) -> list[str]:
        remote = self._remote_path(path)
        logger.debug("Listing directory: %s", remote)

        def _list_dir_internal() -> list[str]:
            try:
                names = self._sftp.listdir(remote)
            except FileNotFoundError:
                return []
            return sorted(name for name in names if name not in (".", ".."))

        return self._with_retry(f"list_dir({remote})", _list_dir_internal)

    def ensure_dir(self, path: str) -> None:
        remote = self._remote_path(path)
        logger.debug("Creating directory: %s", remote)
        self._with_retry(f"ensure_dir({remote})", self._make_dirs, remote)

    def delete_dir(self, path: str) -> None:
        remote = self._remote_path(path)
        logger.debug("Deleting directory: %s", remote)

        def _delete_dir_internal() -> None:
            attr = self._stat_or_none(remote)
            if attr is None:
                return
            if not (attr.st_mode and stat.S_ISDIR(attr.st_mode)):
                raise NotADirectoryError(f"Not a directory: {remote}")
            self._remove_tree(remote, keep_root=remote == self.root)

        self._with_retry(f"delete_dir({remote})", _delete_dir_internal)

    def clear(self, path: str) -> None:
        """Remove everything below a directory, keeping the directory itself."""
        remote = self._remote_path(path)

        def _clear_internal() -> None:
            if self._stat_or_none(remote) is not None:
                self._remove_tree(remote, keep_root=True)

        self._with_retry(f"clear({remote})", _clear_internal)

    def stat(self, path: str) -> FileStats:
        remote = self._remote_path(path)
        logger.debug("Getting file info: %s", remote)

        def _stat_internal() -> FileStats:
            attr = self._sftp.stat(remote)
            is_dir = stat.S_ISDIR(attr.st_mode) if attr.st_mode else False
            size = attr.st_size if attr.st_size and not is_dir else 0
            mtime = datetime.fromtimestamp(attr.st_mtime) if attr.st_mtime else datetime.now()
            name = posixpath.basename(remote) or "/"
            return FileStats(name=name, size=size, mtime=mtime, is_dir=is_dir)

        return self._with_retry(f"stat({remote})", _stat_internal)

    def chmod(self, path: str, mode: int) -> None:
        remote = self._remote_path(path)
        self._with_retry(f"chmod({remote})", self._sftp_call, "chmod", remote, mode)

    def _sftp_call(self, method: str, *args):
        """Call an SFTP method on the current session. Caller must hold lock."""
        return getattr(self._sftp, method)(*args)

    def _make_dirs(self, remote: str) -> None:
        """Create remote and any missing parents. Caller must hold lock."""
        if not remote or remote == "/":
            return
        current = ""
        for part in remote.strip("/").split("/"):
            current = current + "/" + part
            attr = self._stat_or_none(current)
            if attr is None:
                self._sftp.mkdir(current)
                logger.debug("Created directory: %s", current)
            elif not (attr.st_mode and stat.S_ISDIR(attr.st_mode)):
                raise NotADirectoryError(f"Not a directory: {current}")

    def _remove_tree(self, remote: str, keep_root: bool = False) -> None:
        """Recursively delete a remote directory. Caller must hold lock."""
        for attr in self._sftp.listdir_attr(remote):
            if attr.filename in (".", ".."):
                continue
            child = posixpath.join(remote, attr.filename)
            if attr.st_mode and stat.S_ISDIR(attr.st_mode):
                self._remove_tree(child)
            else:
                self._sftp.remove(child)
        if not keep_root:
            self._sftp.rmdir(remote)
            logger.debug("Deleted directory: %s", remote)
