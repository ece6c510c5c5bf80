"""Operator CLI — inspect and lift suspensions in a SQLite throttle store.

Entry point registered as ``loginthrottle`` in ``pyproject.toml``::

    [project.scripts]
    loginthrottle = "loginthrottle.cli:main"
"""

import argparse
import sys
from time import time

from loginthrottle.backends.sqlite import SQLiteKeyValueStore
from loginthrottle.config import ThrottleConfig
from loginthrottle.engine import ThrottleEngine
from loginthrottle.errors import StorageUnavailable
from loginthrottle.store import ThrottleStore


def _status(store: ThrottleStore, identity_id: str) -> None:
    state = store.get(identity_id)
    now = int(time())
    print(f"identity:           {identity_id}")
    print(f"failed attempts:    {state.failed_attempts}")
    print(f"suspension minutes: {state.suspension_minutes}")
    if state.is_suspended(now):
        print(f"suspended:          yes ({state.remaining_seconds(now)}s remaining)")
    else:
        print("suspended:          no")


def _unlock(store: ThrottleStore, identity_id: str) -> None:
    ThrottleEngine(store, ThrottleConfig(key_prefix=store.prefix)).reset(identity_id)
    print(f"Cleared throttle state for {identity_id}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``loginthrottle`` command."""
    parser = argparse.ArgumentParser(
        prog="loginthrottle",
        description="Inspect and clear per-account login throttle state.",
    )
    parser.add_argument("--prefix", default=ThrottleConfig().key_prefix, help="Key namespace prefix")
    subparsers = parser.add_subparsers(dest="command")

    status_parser = subparsers.add_parser("status", help="Show throttle state for an identity")
    status_parser.add_argument("database", help="Path to the SQLite throttle database")
    status_parser.add_argument("identity", help="Identity ID")

    unlock_parser = subparsers.add_parser("unlock", help="Clear throttle state for an identity")
    unlock_parser.add_argument("database", help="Path to the SQLite throttle database")
    unlock_parser.add_argument("identity", help="Identity ID")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        with SQLiteKeyValueStore(args.database) as backend:
            store = ThrottleStore(backend, prefix=args.prefix)
            if args.command == "status":
                _status(store, args.identity)
            elif args.command == "unlock":
                _unlock(store, args.identity)
    except StorageUnavailable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
