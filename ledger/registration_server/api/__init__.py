"""
API module for the registration ledger.

This module provides the external interface:
- FastAPI HTTP server with message and REST endpoints
- Pydantic wire models and their JSON Schemas

Invariants:
    - Mutating calls carry the sender in X-Actor
    - Reads never mutate state

How to change safely:
    - Add new endpoints, don't change existing message shapes
"""

from .http_server import create_app
from .messages import message_schemas

__all__ = [
    "create_app",
    "message_schemas",
]
