"""
Sequential id assignment for new registrations.

The sequencer keeps no state of its own. The next id is always the
largest stored id plus one, or 1 for an empty ledger.

Invariants:
    - Ids are never reused and strictly increase
    - next_id_in() must run inside the same write transaction as the insert

How to change safely:
    - Never compute an id outside the transaction that stores it;
      two writers would otherwise collide on put()
"""

from __future__ import annotations

import sqlite3

from ..errors import IdSpaceExhaustedError
from .record_store import MAX_ID, RecordStore


class Sequencer:
    """Derives the next registration id from the record store.

    Example:
        >>> sequencer = Sequencer(store)
        >>> with store.write_transaction() as conn:
        ...     record_id = sequencer.next_id_in(conn)
        ...     store.insert(conn, record_id, record)
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def next_id_in(self, conn: sqlite3.Connection) -> int:
        """Compute the next id on an open connection.

        Raises:
            IdSpaceExhaustedError: If the largest storable id is taken
        """
        last_id = self.store.last_id(conn)
        if last_id >= MAX_ID:
            raise IdSpaceExhaustedError(last_id)
        return last_id + 1

    async def next_id(self) -> int:
        """Compute the next id from a fresh read snapshot.

        The result is only a preview; concurrent writers may take it
        before the caller does.
        """
        with self.store.read_snapshot() as conn:
            return self.next_id_in(conn)
