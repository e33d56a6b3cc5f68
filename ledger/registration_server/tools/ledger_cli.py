"""
Admin CLI for the registration ledger.

This tool operates directly on the local SQLite ledger:
- init: Instantiate the ledger with its owner
- record: Store a registration as a given sender
- get / list: Read registrations
- migrate: Advance the stored version marker
- stats: Show record count and last id
- schema: Print JSON Schemas of every wire message

Usage:
    ledger-admin --data-dir ./data init --owner user:admin
    ledger-admin --data-dir ./data record --sender user:admin \\
        --name Alpha --email alpha@example.invalid.org --address addr1
    ledger-admin --data-dir ./data list --start-after 10 --limit 5
    ledger-admin schema > schema.json

Invariants:
    - Ledger errors print the error code and exit non-zero
    - Output is JSON with sorted keys so scripts can parse it

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any

from ..api.messages import message_schemas
from ..config import AuthConfig, QueryConfig, StorageConfig
from ..errors import LedgerError
from ..models import CallContext, RecordRequest
from ..principal import OwnerGuard
from ..service import LedgerService
from ..store import RecordStore

logger = logging.getLogger(__name__)


class LedgerCLI:
    """Async command implementations over a LedgerService.

    Example:
        >>> cli = LedgerCLI(service)
        >>> await cli.stats()
        {'registrations': 0, 'last_id': 0, 'initialized': False}
    """

    def __init__(self, service: LedgerService) -> None:
        self.service = service

    async def init(self, owner: str, sender: str) -> dict[str, Any]:
        ctx = CallContext(sender=sender, timestamp=int(time.time()))
        return (await self.service.instantiate(ctx, owner)).to_dict()

    async def record(
        self,
        sender: str,
        name: str,
        email: str,
        address: str,
        timestamp: int | None = None,
    ) -> dict[str, Any]:
        ctx = CallContext(
            sender=sender,
            timestamp=timestamp if timestamp is not None else int(time.time()),
        )
        request = RecordRequest(name=name, email=email, address=address)
        return (await self.service.record(ctx, request)).to_dict()

    async def get(self, record_id: int) -> dict[str, Any]:
        return (await self.service.get_registration(record_id)).to_dict()

    async def list(self, start_after: int | None, limit: int | None) -> dict[str, Any]:
        return (await self.service.list_registrations(start_after, limit)).to_dict()

    async def migrate(self, sender: str) -> dict[str, Any]:
        ctx = CallContext(sender=sender, timestamp=int(time.time()))
        return (await self.service.migrate(ctx)).to_dict()

    async def stats(self) -> dict[str, Any]:
        return await self.service.store.get_stats()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    storage_defaults = StorageConfig.from_env()

    parser = argparse.ArgumentParser(description="Registration ledger admin tool")
    parser.add_argument(
        "--data-dir",
        default=storage_defaults.data_dir,
        help="Directory holding the ledger database (default: $DATA_DIR)",
    )
    parser.add_argument(
        "--db-name",
        default=storage_defaults.db_name,
        help="Ledger database file name (default: $LEDGER_DB_NAME)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Instantiate the ledger")
    init_parser.add_argument("--owner", required=True, help="Owner principal, e.g. user:admin")
    init_parser.add_argument("--sender", default="system:ledger-admin", help="Calling principal")

    record_parser = subparsers.add_parser("record", help="Store a registration")
    record_parser.add_argument("--sender", required=True, help="Calling principal")
    record_parser.add_argument("--name", required=True)
    record_parser.add_argument("--email", required=True)
    record_parser.add_argument("--address", required=True)
    record_parser.add_argument(
        "--timestamp", type=int, help="Creation time in unix seconds (default: now)"
    )

    get_parser = subparsers.add_parser("get", help="Get a registration by id")
    get_parser.add_argument("id", type=int)

    list_parser = subparsers.add_parser("list", help="List registrations")
    list_parser.add_argument("--start-after", type=int, help="Last id already seen")
    list_parser.add_argument("--limit", type=int, help="Page size (default 30, max 100)")

    migrate_parser = subparsers.add_parser("migrate", help="Advance the version marker")
    migrate_parser.add_argument("--sender", default="system:ledger-admin", help="Calling principal")

    subparsers.add_parser("stats", help="Show ledger statistics")
    subparsers.add_parser("schema", help="Print JSON Schemas of all messages")

    return parser


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    storage = StorageConfig.from_env()
    store = RecordStore(
        data_dir=args.data_dir,
        db_name=args.db_name,
        wal_mode=storage.wal_mode,
        busy_timeout_ms=storage.busy_timeout_ms,
        cache_size_pages=storage.cache_size_pages,
    )
    await store.initialize()
    service = LedgerService(
        store,
        query_config=QueryConfig.from_env(),
        guard=OwnerGuard(enforce=AuthConfig.from_env().enforce_owner),
    )
    cli = LedgerCLI(service)

    if args.command == "init":
        return await cli.init(args.owner, args.sender)
    if args.command == "record":
        return await cli.record(args.sender, args.name, args.email, args.address, args.timestamp)
    if args.command == "get":
        return await cli.get(args.id)
    if args.command == "list":
        return await cli.list(args.start_after, args.limit)
    if args.command == "migrate":
        return await cli.migrate(args.sender)
    if args.command == "stats":
        return await cli.stats()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the ledger admin tool."""
    args = build_parser().parse_args(argv)

    if args.command == "schema":
        print(json.dumps(message_schemas(), indent=2, sort_keys=True))
        return 0

    try:
        result = asyncio.run(_run(args))
    except LedgerError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
