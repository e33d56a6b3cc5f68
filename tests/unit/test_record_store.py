"""
Unit tests for the SQLite record store.

Tests cover:
- Insert and point lookup
- Duplicate id rejection
- Ascending range scans with exclusive lower bound
- Config and contract info singletons
- Transaction rollback
"""

import sqlite3
import tempfile

import pytest

from ledger.registration_server.errors import DuplicateKeyError, NotFoundError
from ledger.registration_server.models import ContractInfo, LedgerConfig, Record
from ledger.registration_server.store.record_store import MAX_ID, RecordStore


def make_record(n: int, created: int = 1000) -> Record:
    return Record(
        created=created + n,
        name=f"Name {n}",
        email=f"person{n}@example-domain.org",
        address=f"addr{n}",
    )


class TestRecordStore:
    """Tests for RecordStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def store(self, data_dir):
        """Create store in the temporary directory."""
        return RecordStore(data_dir, wal_mode=False)

    @pytest.mark.asyncio
    async def test_initialize_creates_database(self, store):
        """Initialize creates the database file."""
        assert not store.exists()

        await store.initialize()

        assert store.exists()
        stats = await store.get_stats()
        assert stats == {"registrations": 0, "last_id": 0, "initialized": False}

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store):
        """Initializing twice keeps stored data."""
        await store.initialize()
        await store.put(1, make_record(1))

        await store.initialize()

        assert (await store.get(1)).name == "Name 1"

    @pytest.mark.asyncio
    async def test_get_before_initialize_fails(self, store):
        """Reads against a missing database raise."""
        with pytest.raises(FileNotFoundError):
            await store.get(1)

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        """Put stores a record retrievable by id."""
        await store.initialize()
        record = make_record(1)

        await store.put(1, record)

        fetched = await store.get(1)
        assert fetched == record

    @pytest.mark.asyncio
    async def test_put_duplicate_id_rejected(self, store):
        """Put never overwrites an existing id."""
        await store.initialize()
        await store.put(7, make_record(1))

        with pytest.raises(DuplicateKeyError) as exc_info:
            await store.put(7, make_record(2))

        assert exc_info.value.record_id == 7
        assert (await store.get(7)).name == "Name 1"

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, store):
        """Unknown ids raise NotFoundError."""
        await store.initialize()
        await store.put(1, make_record(1))

        for record_id in (0, 2, MAX_ID, MAX_ID + 1, -1):
            with pytest.raises(NotFoundError):
                await store.get(record_id)

    @pytest.mark.asyncio
    async def test_last_id_tracks_maximum(self, store):
        """last_id returns the largest key, not the count."""
        await store.initialize()
        await store.put(3, make_record(3))
        await store.put(10, make_record(10))
        await store.put(5, make_record(5))

        with store.read_snapshot() as conn:
            assert store.last_id(conn) == 10

    @pytest.mark.asyncio
    async def test_range_ascending(self, store):
        """Range returns entries in ascending id order."""
        await store.initialize()
        for record_id in (4, 1, 3, 2):
            await store.put(record_id, make_record(record_id))

        entries = await store.range(None, 10)

        assert [record_id for record_id, _ in entries] == [1, 2, 3, 4]
        assert entries[0][1].name == "Name 1"

    @pytest.mark.asyncio
    async def test_range_exclusive_lower_bound(self, store):
        """Range never returns ids at or below start_after."""
        await store.initialize()
        for record_id in range(1, 11):
            await store.put(record_id, make_record(record_id))

        for start_after in range(0, 12):
            entries = await store.range(start_after, 100)
            assert all(record_id > start_after for record_id, _ in entries)
            assert len(entries) == max(0, 10 - start_after)

    @pytest.mark.asyncio
    async def test_range_respects_limit(self, store):
        """Range returns at most limit entries."""
        await store.initialize()
        for record_id in range(1, 101):
            await store.put(record_id, make_record(record_id))

        entries = await store.range(None, 7)
        assert [record_id for record_id, _ in entries] == list(range(1, 8))

        entries = await store.range(95, 7)
        assert [record_id for record_id, _ in entries] == list(range(96, 101))

    @pytest.mark.asyncio
    async def test_range_zero_limit(self, store):
        """A zero limit yields an empty page."""
        await store.initialize()
        await store.put(1, make_record(1))

        assert await store.range(None, 0) == []

    @pytest.mark.asyncio
    async def test_range_negative_limit_rejected(self, store):
        """Negative limits are rejected instead of meaning unlimited."""
        await store.initialize()

        with pytest.raises(ValueError):
            await store.range(None, -1)

    @pytest.mark.asyncio
    async def test_range_empty_store(self, store):
        """Range over an empty ledger is empty."""
        await store.initialize()

        assert await store.range(None, 30) == []
        assert await store.range(MAX_ID, 30) == []

    @pytest.mark.asyncio
    async def test_iter_range_is_lazy(self, store):
        """iter_range yields on demand from an open snapshot."""
        await store.initialize()
        for record_id in range(1, 201):
            await store.put(record_id, make_record(record_id))

        with store.read_snapshot() as conn:
            iterator = store.iter_range(conn, start_after=150)
            assert next(iterator)[0] == 151
            assert next(iterator)[0] == 152
            iterator.close()

    @pytest.mark.asyncio
    async def test_write_transaction_rolls_back(self, store):
        """A failing block persists nothing."""
        await store.initialize()

        with pytest.raises(RuntimeError):
            with store.write_transaction() as conn:
                store.insert(conn, 1, make_record(1))
                raise RuntimeError("abort")

        with pytest.raises(NotFoundError):
            await store.get(1)

    @pytest.mark.asyncio
    async def test_config_singleton(self, store):
        """Config is absent until saved and cannot be saved twice."""
        await store.initialize()
        assert await store.get_config() is None

        with store.write_transaction() as conn:
            store.save_config(conn, LedgerConfig(owner="user:alice"))

        assert await store.get_config() == LedgerConfig(owner="user:alice")

        with pytest.raises(sqlite3.IntegrityError):
            with store.write_transaction() as conn:
                store.save_config(conn, LedgerConfig(owner="user:bob"))

        assert await store.get_config() == LedgerConfig(owner="user:alice")

    @pytest.mark.asyncio
    async def test_contract_info_replaced(self, store):
        """Contract info is upserted."""
        await store.initialize()

        with store.write_transaction() as conn:
            assert store.get_contract_info(conn) is None
            store.set_contract_info(conn, ContractInfo("registration-ledger", "0.1.0"))
            store.set_contract_info(conn, ContractInfo("registration-ledger", "0.2.0"))

        with store.read_snapshot() as conn:
            assert store.get_contract_info(conn) == ContractInfo("registration-ledger", "0.2.0")

    @pytest.mark.asyncio
    async def test_stats(self, store):
        """Stats report count, last id and initialization."""
        await store.initialize()
        await store.put(1, make_record(1))
        await store.put(2, make_record(2))
        with store.write_transaction() as conn:
            store.save_config(conn, LedgerConfig(owner="user:alice"))

        stats = await store.get_stats()

        assert stats == {"registrations": 2, "last_id": 2, "initialized": True}

    @pytest.mark.asyncio
    async def test_wal_mode_store(self, data_dir):
        """Store works with WAL journaling enabled."""
        store = RecordStore(data_dir, db_name="wal.db", wal_mode=True)
        await store.initialize()
        await store.put(1, make_record(1))

        assert (await store.get(1)).address == "addr1"
        assert store.db_path.name == "wal.db"
