"""
Operational tools for the registration ledger.

This module provides:
- ledger_cli: Administrative CLI for the local ledger database
"""
