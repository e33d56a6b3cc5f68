"""
Storage layer for the registration ledger.

This module handles:
- The SQLite record store (registrations, config, contract info)
- Sequential id assignment derived from the stored maximum id

Invariants:
    - Registrations are write-once
    - Id assignment and insert share one write transaction
    - Range scans never hold a cursor across calls
"""

from .record_store import RecordStore
from .sequencer import Sequencer

__all__ = [
    "RecordStore",
    "Sequencer",
]
