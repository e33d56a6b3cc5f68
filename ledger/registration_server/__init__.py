"""
Registration Ledger - append-only registration storage with sequential ids.

Authorized callers submit a record (name, email, address). The ledger
assigns the next id and a creation timestamp from the invocation context,
stores it once, and serves lookups by id and paginated listings.

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌───────────┐     ┌─────────────┐
    │ HTTP / CLI  │────▶│ LedgerService│────▶│ Sequencer │────▶│ RecordStore │
    └─────────────┘     └──────────────┘     └───────────┘     └──────┬──────┘
                                                                      │
                                                                      ▼
                                                                ┌──────────┐
                                                                │  SQLite  │
                                                                └──────────┘

Invariants:
    - Ids start at 1, strictly increase and are never reused
    - Registrations are never updated or deleted
    - Each invocation commits atomically or persists nothing
    - The ledger owner is written once at instantiation

How to change safely:
    - Keep id assignment and insert in one write transaction
    - Bump the version before shipping anything that needs migrate()

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
