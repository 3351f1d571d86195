"""
cachedfs - Main Entry Point

This module provides the CLI interface and wires up configuration, logging,
the selected backend and the cache layer.
"""

import argparse
import logging
import sys

from .cached import CachedFileSystem
from .config import load_config
from .factory import create_backend, open_filesystem
from .logger import setup_logging
from .sftp import SFTPFileSystem

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to configuration file")
    common.add_argument("--backend", choices=["memory", "local", "sftp"], help="Storage backend")
    common.add_argument("--root", help="Base directory for local and sftp backends")
    common.add_argument("--host", help="SFTP host")
    common.add_argument("--port", type=int, help="SFTP port")
    common.add_argument("--user", help="SFTP username")
    common.add_argument("--password", help="SFTP password")
    common.add_argument("--key-file", help="Path to SSH private key")
    common.add_argument("--no-cache", action="store_true", help="Bypass the cache layer")
    common.add_argument("--max-size", type=int, help="Maximum entries per cache")
    common.add_argument("--ttl-ms", type=int, help="Cache entry lifetime in ms (0 = forever)")
    common.add_argument("--stats", action="store_true", help="Print cache statistics afterwards")
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        prog="cachedfs",
        description="cachedfs - Cached access to local, in-memory and SFTP storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cachedfs cat --backend local --root ./data notes.txt notes.txt --stats
  cachedfs ls --backend sftp --host myserver.com --key-file ~/.ssh/id_rsa /var/www
  cachedfs write --config cachedfs.ini reports/today.txt "all good"
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    cat_parser = subparsers.add_parser("cat", parents=[common], help="Print file contents")
    cat_parser.add_argument("paths", nargs="+", help="Files to print (repeat to hit the cache)")

    for name, help_text in (
        ("ls", "List a directory"),
        ("stat", "Show file metadata"),
        ("exists", "Check whether a path exists"),
        ("rm", "Delete a file"),
        ("mkdir", "Create a directory"),
        ("rmdir", "Delete a directory recursively"),
    ):
        sub = subparsers.add_parser(name, parents=[common], help=help_text)
        sub.add_argument("path")

    write_parser = subparsers.add_parser("write", parents=[common], help="Write text to a file")
    write_parser.add_argument("path")
    write_parser.add_argument("text")

    return parser.parse_args(argv)


def run_command(fs, args) -> int:
    """Execute one filesystem command against fs and print the result."""
    if args.command == "cat":
        for path in args.paths:
            sys.stdout.write(fs.read_file(path))
            sys.stdout.write("\n")
    elif args.command == "ls":
        for name in fs.list_dir(args.path):
            print(name)
    elif args.command == "stat":
        stats = fs.stat(args.path)
        print(f"Name:     {stats.name}")
        print(f"Type:     {'directory' if stats.is_dir else 'file'}")
        print(f"Size:     {stats.size}")
        print(f"Modified: {stats.mtime.isoformat()}")
    elif args.command == "exists":
        exists = fs.exists(args.path)
        print("yes" if exists else "no")
        return 0 if exists else 1
    elif args.command == "write":
        fs.write_file(args.path, args.text)
        print(f"[OK] Wrote {len(args.text)} characters to {args.path}")
    elif args.command == "rm":
        fs.delete_file(args.path)
        print(f"[OK] Deleted {args.path}")
    elif args.command == "mkdir":
        fs.ensure_dir(args.path)
        print(f"[OK] Created {args.path}")
    elif args.command == "rmdir":
        fs.delete_dir(args.path)
        print(f"[OK] Deleted {args.path}")
    return 0


def print_statistics(fs) -> None:
    """Print cache statistics, or a note when the cache is bypassed."""
    if not isinstance(fs, CachedFileSystem):
        print("Cache disabled")
        return
    stats = fs.get_cache_statistics()
    for label, cache in (
        ("content", stats.content),
        ("existence", stats.existence),
        ("directory", stats.directory),
    ):
        print(f"{label:<10} {cache.size}/{cache.capacity} entries, ttl={cache.ttl_ms}ms")
        for key in cache.keys:
            print(f"           {key}")


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    if args.command is None:
        print("Usage: cachedfs <command> [options]")
        print()
        print("Commands: cat, ls, stat, exists, write, rm, mkdir, rmdir")
        print()
        print("Run 'cachedfs <command> --help' for more information.")
        return 1

    backend = None
    try:
        config = load_config(
            config_path=args.config,
            backend=args.backend,
            root=args.root,
            host=args.host,
            port=args.port,
            username=args.user,
            password=args.password,
            key_file=args.key_file,
            no_cache=args.no_cache,
            max_size=args.max_size,
            ttl_ms=args.ttl_ms,
            debug=args.verbose,
        )
        setup_logging(config.logging)
        from . import __version__

        logger.info("Starting cachedfs v%s with %s backend", __version__, config.backend.type)

        backend = create_backend(config)
        if isinstance(backend, SFTPFileSystem):
            backend.connect()
        fs = open_filesystem(config, backend)

        result = run_command(fs, args)
        if args.stats:
            print_statistics(fs)
        return result

    except UnicodeDecodeError as e:
        print(f"[ERROR] Could not decode file: {e}")
        return 1
    except ValueError as e:
        # Configuration validation errors
        print(f"[ERROR] Configuration error: {e}")
        return 1
    except FileNotFoundError as e:
        print(f"[ERROR] Not found: {e}")
        return 1
    except PermissionError as e:
        print(f"[ERROR] Permission denied: {e}")
        return 1
    except (ConnectionError, TimeoutError) as e:
        print(f"[ERROR] Could not reach server: {e}")
        return 1
    except OSError as e:
        logger.exception("Filesystem error: %s", e)
        print(f"[ERROR] {e}")
        return 1
    finally:
        if isinstance(backend, SFTPFileSystem):
            try:
                backend.disconnect()
            except Exception as e:
                logger.warning("Error disconnecting: %s", e)


if __name__ == "__main__":
    sys.exit(main() or 0)
