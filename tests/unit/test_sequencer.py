"""
Unit tests for sequential id assignment.
"""

import pytest

from ledger.registration_server.errors import IdSpaceExhaustedError
from ledger.registration_server.models import Record
from ledger.registration_server.store import RecordStore, Sequencer
from ledger.registration_server.store.record_store import MAX_ID


class TestSequencer:
    """Tests for Sequencer."""

    @pytest.fixture
    def store(self, tmp_path):
        return RecordStore(str(tmp_path), wal_mode=False)

    @pytest.fixture
    def sequencer(self, store):
        return Sequencer(store)

    @pytest.mark.asyncio
    async def test_empty_store_starts_at_one(self, store, sequencer):
        """First id is 1."""
        await store.initialize()

        assert await sequencer.next_id() == 1

    @pytest.mark.asyncio
    async def test_next_id_is_max_plus_one(self, store, sequencer):
        """Next id follows the largest key even when sparse."""
        await store.initialize()
        await store.put(2, Record(1, "Name", "e" * 20, "a"))
        await store.put(9, Record(1, "Name", "e" * 20, "a"))

        assert await sequencer.next_id() == 10

    @pytest.mark.asyncio
    async def test_next_id_has_no_side_effects(self, store, sequencer):
        """Previewing the next id does not reserve it."""
        await store.initialize()

        assert await sequencer.next_id() == 1
        assert await sequencer.next_id() == 1
        assert (await store.get_stats())["registrations"] == 0

    @pytest.mark.asyncio
    async def test_next_id_in_transaction(self, store, sequencer):
        """Id computed inside a write transaction sees prior inserts."""
        await store.initialize()

        with store.write_transaction() as conn:
            first = sequencer.next_id_in(conn)
            store.insert(conn, first, Record(1, "Name", "e" * 20, "a"))
            second = sequencer.next_id_in(conn)

        assert (first, second) == (1, 2)

    @pytest.mark.asyncio
    async def test_exhausted_id_space_raises_ledger_error(self, store, sequencer):
        """No id is handed out once the largest storable id is taken."""
        await store.initialize()
        await store.put(MAX_ID, Record(1, "Name", "e" * 20, "a"))

        with pytest.raises(IdSpaceExhaustedError) as exc_info:
            await sequencer.next_id()

        assert exc_info.value.code == "ID_SPACE_EXHAUSTED"
        assert exc_info.value.last_id == MAX_ID
