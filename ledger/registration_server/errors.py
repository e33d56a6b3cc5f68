"""
Error types for the registration ledger.

Every failure an invocation can report is a LedgerError subclass:
- NotFoundError: Query referenced an id that was never written
- DuplicateKeyError: Write attempted to reuse an existing id
- IdSpaceExhaustedError: No id above the current maximum can be stored
- PaymentNotAllowedError: Invocation carried funds
- InvalidLengthError: Field outside its declared bounds
- UnauthorizedError: Sender is not the configured owner
- InvalidPrincipalError: Owner string is not a well-formed principal
- NotInitializedError / AlreadyInitializedError: Ledger config state
- MigrationError: Stored version marker does not allow migration

Storage failures (sqlite3.Error) are not wrapped; they propagate unchanged
after the invocation's transaction is rolled back.

Invariants:
    - All errors inherit from LedgerError
    - Every error carries a stable code and a details dict
    - Errors are raised before any state mutation where possible
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "LEDGER_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for transport responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(LedgerError):
    """No registration exists for the requested id."""

    def __init__(self, record_id: int) -> None:
        super().__init__(
            f"Registration not found: {record_id}",
            code="NOT_FOUND",
            details={"id": record_id},
        )
        self.record_id = record_id


class DuplicateKeyError(LedgerError):
    """A registration with this id already exists.

    Raised when:
    - The sequencer handed out an id that is already taken
    - put() is called directly with a used id

    This is an invariant violation, never a recoverable condition.
    """

    def __init__(self, record_id: int) -> None:
        super().__init__(
            f"Registration id already exists: {record_id}",
            code="DUPLICATE_KEY",
            details={"id": record_id},
        )
        self.record_id = record_id


class IdSpaceExhaustedError(LedgerError):
    """The largest storable id is already taken."""

    def __init__(self, last_id: int) -> None:
        super().__init__(
            f"Registration id space exhausted at {last_id}",
            code="ID_SPACE_EXHAUSTED",
            details={"last_id": last_id},
        )
        self.last_id = last_id


class PaymentNotAllowedError(LedgerError):
    """The invocation carried a value transfer."""

    def __init__(self, funds: Optional[list[str]] = None) -> None:
        super().__init__(
            "This ledger accepts no funds",
            code="PAYMENT_NOT_ALLOWED",
            details={"funds": funds or []},
        )
        self.funds = funds or []


class InvalidLengthError(LedgerError):
    """A field is shorter or longer than allowed.

    Attributes:
        field_name: Offending field
        min_length: Inclusive lower bound
        max_length: Inclusive upper bound
    """

    def __init__(self, field_name: str, min_length: int, max_length: int) -> None:
        super().__init__(
            f"{field_name} must be between {min_length} and {max_length} characters",
            code="INVALID_LENGTH",
            details={
                "field": field_name,
                "min": min_length,
                "max": max_length,
            },
        )
        self.field_name = field_name
        self.min_length = min_length
        self.max_length = max_length


class UnauthorizedError(LedgerError):
    """Sender is not allowed to write."""

    def __init__(self, sender: str) -> None:
        super().__init__(
            f"Unauthorized: {sender} is not the ledger owner",
            code="UNAUTHORIZED",
            details={"sender": sender},
        )
        self.sender = sender


class InvalidPrincipalError(LedgerError):
    """Principal string is malformed."""

    def __init__(self, principal: str, reason: str) -> None:
        super().__init__(
            f"Invalid principal '{principal}': {reason}",
            code="INVALID_PRINCIPAL",
            details={"principal": principal, "reason": reason},
        )
        self.principal = principal
        self.reason = reason


class NotInitializedError(LedgerError):
    """Ledger has not been instantiated yet."""

    def __init__(self, message: str = "Ledger is not initialized") -> None:
        super().__init__(message, code="NOT_INITIALIZED")


class AlreadyInitializedError(LedgerError):
    """Ledger config has already been written."""

    def __init__(self, owner: str) -> None:
        super().__init__(
            "Ledger is already initialized",
            code="ALREADY_INITIALIZED",
            details={"owner": owner},
        )
        self.owner = owner


class MigrationError(LedgerError):
    """Stored version marker does not permit migration.

    Raised when:
    - The stored contract name differs from the running one
    - The stored version is not older than the running version
    - The stored version is not valid semver
    """

    def __init__(
        self,
        message: str,
        stored_name: Optional[str] = None,
        stored_version: Optional[str] = None,
        running_version: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="MIGRATION_ERROR",
            details={
                "stored_name": stored_name,
                "stored_version": stored_version,
                "running_version": running_version,
            },
        )
        self.stored_name = stored_name
        self.stored_version = stored_version
        self.running_version = running_version
