"""
Registration ledger test suite.

This package contains:
- unit/: Unit tests (store, service, config, principals, models)
- integration/: Integration tests (HTTP API, admin CLI, concurrent writers)
"""
