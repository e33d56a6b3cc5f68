"""
Principal parsing and owner authorization for the ledger.

This module handles:
- Principal parsing and validation (user:X, role:X, group:X, system:X)
- The owner guard evaluated at the top of the write path

Invariants:
    - Owner principals are concrete; wildcards are rejected
    - The owner guard runs before validation and id assignment
    - A disabled guard admits any sender but is logged once per guard

How to change safely:
    - New principal types must be backward compatible with stored owners
    - Keep the guard free of storage access; config is passed in
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidPrincipalError, UnauthorizedError
from .models import LedgerConfig

logger = logging.getLogger(__name__)


class PrincipalType(Enum):
    """Kinds of principals that may own or write to the ledger."""

    USER = "user"
    ROLE = "role"
    GROUP = "group"
    SYSTEM = "system"


@dataclass(frozen=True)
class Principal:
    """An authenticated actor.

    Attributes:
        type: Principal type
        id: Principal identifier
    """

    type: PrincipalType
    id: str

    @classmethod
    def parse(cls, principal_str: str) -> Principal:
        """Parse a principal string.

        Args:
            principal_str: String like "user:42" or "system:registrar"

        Returns:
            Parsed Principal

        Raises:
            InvalidPrincipalError: If format is invalid
        """
        if not isinstance(principal_str, str) or ":" not in principal_str:
            raise InvalidPrincipalError(str(principal_str), "expected <type>:<id>")

        type_str, id_str = principal_str.split(":", 1)
        try:
            ptype = PrincipalType(type_str)
        except ValueError:
            valid = [t.value for t in PrincipalType]
            raise InvalidPrincipalError(
                principal_str, f"type must be one of {valid}"
            ) from None

        if not id_str or id_str != id_str.strip():
            raise InvalidPrincipalError(principal_str, "id must be non-empty without padding")
        if "*" in id_str:
            raise InvalidPrincipalError(principal_str, "wildcards are not allowed")

        return cls(type=ptype, id=id_str)

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


def validate_principal(principal_str: str) -> str:
    """Validate and normalize a principal string.

    Returns:
        Canonical principal string

    Raises:
        InvalidPrincipalError: If malformed
    """
    return str(Principal.parse(principal_str))


class OwnerGuard:
    """Authorization check comparing the sender to the configured owner.

    Example:
        >>> guard = OwnerGuard(enforce=True)
        >>> guard.check("user:alice", LedgerConfig(owner="user:alice"))
    """

    def __init__(self, enforce: bool = True) -> None:
        self.enforce = enforce
        if not enforce:
            logger.warning("Owner guard disabled, any sender may record registrations")

    def is_authorized(self, sender: str, config: LedgerConfig | None) -> bool:
        """Return True if sender may write under config."""
        if not self.enforce:
            return True
        return config is not None and sender == config.owner

    def check(self, sender: str, config: LedgerConfig | None) -> None:
        """Check authorization and raise if denied.

        Raises:
            UnauthorizedError: If sender is not the owner
        """
        if not self.is_authorized(sender, config):
            logger.info("Rejected write", extra={"sender": sender})
            raise UnauthorizedError(sender)
