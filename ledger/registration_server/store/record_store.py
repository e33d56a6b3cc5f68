"""
SQLite record store for the registration ledger.

This module manages the single SQLite database that stores:
- Registrations keyed by their sequential id
- The ledger config singleton (owner)
- The contract info singleton (name, version) used by migrations

Invariants:
    - Registrations are insert-only; there is no update or delete path
    - put() never overwrites an existing id
    - Every write runs inside one BEGIN IMMEDIATE transaction
    - Range scans read from a snapshot and never outlive the call

How to change safely:
    - Schema migrations must be backward compatible
    - Keep next-id computation and insert in the same write transaction
    - Use transactions for all write operations

Table schema:
    registrations:
        - id INTEGER PRIMARY KEY (never reused)
        - created INTEGER (unix seconds)
        - name TEXT
        - email TEXT
        - address TEXT

    ledger_config:
        - singleton INTEGER PRIMARY KEY CHECK (singleton = 1)
        - owner TEXT

    contract_info:
        - singleton INTEGER PRIMARY KEY CHECK (singleton = 1)
        - name TEXT
        - version TEXT
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..errors import DuplicateKeyError, NotFoundError
from ..models import ContractInfo, LedgerConfig, Record

logger = logging.getLogger(__name__)

# Rows pulled from the cursor per fetch during range scans
_FETCH_BATCH = 64

# Largest id SQLite can store; u64 ids above it can never exist
MAX_ID = 2**63 - 1


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        created=row["created"],
        name=row["name"],
        email=row["email"],
        address=row["address"],
    )


class RecordStore:
    """SQLite store mapping registration ids to records.

    This class provides:
    - Insert-only record storage with duplicate detection
    - Point lookup and ascending range scans with exclusive lower bound
    - Singleton storage for ledger config and contract info
    - Transaction support for the write path

    Thread safety:
        Each database connection is created per-operation.
        Writers are serialized by SQLite's RESERVED lock.

    Example:
        >>> store = RecordStore("/var/lib/ledger")
        >>> await store.initialize()
        >>> await store.put(1, Record(created=0, name="Alpha", email="...", address="a1"))
        >>> await store.get(1)
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_name: str = "ledger.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the record store.

        Args:
            data_dir: Directory for the SQLite database file
            db_name: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.db_name = db_name
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        """Path to the database file."""
        return self.data_dir / self.db_name

    @contextmanager
    def _get_connection(self, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Args:
            create: Whether to create the database if it does not exist

        Yields:
            SQLite connection in autocommit mode

        Raises:
            FileNotFoundError: If the database doesn't exist and create=False
        """
        if not create and not self.db_path.exists():
            raise FileNotFoundError(f"Ledger database not found: {self.db_path}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS registrations (
                id INTEGER PRIMARY KEY,
                created INTEGER NOT NULL,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                address TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ledger_config (
                singleton INTEGER PRIMARY KEY CHECK (singleton = 1),
                owner TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS contract_info (
                singleton INTEGER PRIMARY KEY CHECK (singleton = 1),
                name TEXT NOT NULL,
                version TEXT NOT NULL
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._lock:
            with self._get_connection(create=True) as conn:
                self._create_schema(conn)
                logger.info(f"Initialized ledger database: {self.db_path}")

    def exists(self) -> bool:
        """Check if the database file exists."""
        return self.db_path.exists()

    @contextmanager
    def write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside one immediate write transaction.

        Commits when the block exits normally; rolls back and re-raises
        on any exception, so a failed invocation persists nothing.
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    @contextmanager
    def read_snapshot(self) -> Iterator[sqlite3.Connection]:
        """Run a block against a consistent read snapshot."""
        with self._get_connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                if conn.in_transaction:
                    conn.execute("COMMIT")

    # -- registrations --

    def last_id(self, conn: sqlite3.Connection) -> int:
        """Return the highest stored id, or 0 when the keyspace is empty."""
        row = conn.execute("SELECT id FROM registrations ORDER BY id DESC LIMIT 1").fetchone()
        return row[0] if row else 0

    def insert(self, conn: sqlite3.Connection, record_id: int, record: Record) -> None:
        """Insert a record on an open connection.

        Raises:
            DuplicateKeyError: If record_id is already taken
        """
        try:
            conn.execute(
                """
                INSERT INTO registrations (id, created, name, email, address)
                VALUES (?, ?, ?, ?, ?)
                """,
                (record_id, record.created, record.name, record.email, record.address),
            )
        except sqlite3.IntegrityError as e:
            logger.error("Duplicate registration id", extra={"id": record_id})
            raise DuplicateKeyError(record_id) from e

    async def put(self, record_id: int, record: Record) -> None:
        """Insert a new record in its own transaction.

        Args:
            record_id: Id to store under
            record: Record to store

        Raises:
            DuplicateKeyError: If record_id is already taken
        """
        with self.write_transaction() as conn:
            self.insert(conn, record_id, record)

        logger.debug("Stored registration", extra={"id": record_id})

    async def get(self, record_id: int) -> Record:
        """Get a record by id.

        Raises:
            NotFoundError: If no record exists for record_id
        """
        if not 0 <= record_id <= MAX_ID:
            raise NotFoundError(record_id)

        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM registrations WHERE id = ?",
                (record_id,),
            ).fetchone()
            if not row:
                raise NotFoundError(record_id)
            return _row_to_record(row)

    def iter_range(
        self,
        conn: sqlite3.Connection,
        start_after: int | None = None,
    ) -> Iterator[tuple[int, Record]]:
        """Lazily yield (id, record) pairs in ascending id order.

        The generator is bound to conn and must be consumed before the
        connection is closed.

        Args:
            conn: Open connection, normally from read_snapshot()
            start_after: Exclusive lower bound on id
        """
        lower = -1 if start_after is None else start_after
        cursor = conn.execute(
            "SELECT * FROM registrations WHERE id > ? ORDER BY id ASC",
            (lower,),
        )
        while True:
            rows = cursor.fetchmany(_FETCH_BATCH)
            if not rows:
                return
            for row in rows:
                yield row["id"], _row_to_record(row)

    async def range(
        self,
        start_after: int | None = None,
        limit: int = 30,
    ) -> list[tuple[int, Record]]:
        """Return up to limit records with id > start_after, ascending.

        Args:
            start_after: Exclusive lower bound on id (None starts from the first)
            limit: Maximum entries to return

        Returns:
            List of (id, record) pairs

        Raises:
            ValueError: If limit is negative
        """
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")
        if start_after is not None and start_after >= MAX_ID:
            return []

        with self.read_snapshot() as conn:
            return list(itertools.islice(self.iter_range(conn, start_after), limit))

    # -- singletons --

    def load_config(self, conn: sqlite3.Connection) -> LedgerConfig | None:
        """Load the ledger config, or None before instantiation."""
        row = conn.execute("SELECT owner FROM ledger_config WHERE singleton = 1").fetchone()
        return LedgerConfig(owner=row["owner"]) if row else None

    def save_config(self, conn: sqlite3.Connection, config: LedgerConfig) -> None:
        """Write the ledger config singleton."""
        conn.execute(
            "INSERT INTO ledger_config (singleton, owner) VALUES (1, ?)",
            (config.owner,),
        )

    def get_contract_info(self, conn: sqlite3.Connection) -> ContractInfo | None:
        """Load the stored version marker."""
        row = conn.execute(
            "SELECT name, version FROM contract_info WHERE singleton = 1"
        ).fetchone()
        return ContractInfo(name=row["name"], version=row["version"]) if row else None

    def set_contract_info(self, conn: sqlite3.Connection, info: ContractInfo) -> None:
        """Write or replace the version marker."""
        conn.execute(
            """
            INSERT INTO contract_info (singleton, name, version) VALUES (1, ?, ?)
            ON CONFLICT(singleton) DO UPDATE SET name = excluded.name, version = excluded.version
            """,
            (info.name, info.version),
        )

    async def get_config(self) -> LedgerConfig | None:
        """Load the ledger config on a fresh connection."""
        with self._get_connection() as conn:
            return self.load_config(conn)

    async def get_stats(self) -> dict[str, int | bool]:
        """Get statistics for the ledger.

        Returns:
            Dictionary with record count, last id and initialization flag
        """
        with self.read_snapshot() as conn:
            count = conn.execute("SELECT COUNT(*) FROM registrations").fetchone()[0]
            return {
                "registrations": count,
                "last_id": self.last_id(conn),
                "initialized": self.load_config(conn) is not None,
            }
