"""
Core data types for the registration ledger.

Records are written once and never mutated. Callers always receive
response copies built from stored values, never the stored objects.

Invariants:
    - Record ids start at 1 and strictly increase
    - Record.created comes from the invocation context, unvalidated
    - LedgerConfig and ContractInfo are singletons held by the store
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidLengthError

NAME_MIN_LENGTH = 4
NAME_MAX_LENGTH = 128
EMAIL_MIN_LENGTH = 20
EMAIL_MAX_LENGTH = 9192

_COIN_RE = re.compile(r"^(\d+)([a-zA-Z][a-zA-Z0-9/:._-]{2,127})$")


@dataclass(frozen=True)
class Coin:
    """A value transfer attached to an invocation.

    Attributes:
        denom: Token denomination
        amount: Non-negative amount
    """

    denom: str
    amount: int

    @classmethod
    def parse(cls, coin_str: str) -> Coin:
        """Parse a coin string like "100uatom".

        Raises:
            ValueError: If the string is not <amount><denom>
        """
        match = _COIN_RE.match(coin_str.strip())
        if not match:
            raise ValueError(f"Invalid coin: {coin_str!r}")
        return cls(denom=match.group(2), amount=int(match.group(1)))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class CallContext:
    """Execution context supplied by the host for one invocation.

    Attributes:
        sender: Authenticated principal making the call
        timestamp: Trusted current time (unix seconds)
        funds: Value transfers attached to the call
    """

    sender: str
    timestamp: int
    funds: tuple[Coin, ...] = ()


@dataclass(frozen=True)
class Record:
    """A stored registration.

    Attributes:
        created: Creation time (unix seconds)
        name: Registrant name
        email: Registrant email
        address: Free-form address string
    """

    created: int
    name: str
    email: str
    address: str

    def into_response(self, record_id: int) -> RegistrationResponse:
        """Build the externally visible shape for this record."""
        return RegistrationResponse(
            id=record_id,
            created=self.created,
            name=self.name,
            email=self.email,
            address=self.address,
        )


@dataclass(frozen=True)
class RecordRequest:
    """Fields submitted by a caller to create a registration."""

    name: str
    email: str
    address: str

    def validate(self) -> None:
        """Check field length bounds.

        Raises:
            InvalidLengthError: Naming the first offending field
        """
        if not NAME_MIN_LENGTH <= len(self.name) <= NAME_MAX_LENGTH:
            raise InvalidLengthError("name", NAME_MIN_LENGTH, NAME_MAX_LENGTH)
        if not EMAIL_MIN_LENGTH <= len(self.email) <= EMAIL_MAX_LENGTH:
            raise InvalidLengthError("email", EMAIL_MIN_LENGTH, EMAIL_MAX_LENGTH)


@dataclass(frozen=True)
class RegistrationResponse:
    """Registration as returned to callers."""

    id: int
    created: int
    name: str
    email: str
    address: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created": self.created,
            "name": self.name,
            "email": self.email,
            "address": self.address,
        }


@dataclass(frozen=True)
class ListRegistrationsResponse:
    """Page of registrations in ascending id order."""

    registrations: list[RegistrationResponse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"registrations": [r.to_dict() for r in self.registrations]}


@dataclass(frozen=True)
class LedgerConfig:
    """Ledger configuration written once at instantiation.

    Attributes:
        owner: Principal allowed to record registrations
    """

    owner: str


@dataclass(frozen=True)
class ContractInfo:
    """Version marker consulted by migrations."""

    name: str
    version: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass
class Response:
    """Outcome of a successful state-changing invocation.

    Attributes are observable key/value pairs for external auditing.
    They are not part of the data contract.
    """

    attributes: list[tuple[str, str]] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def add_attribute(self, key: str, value: Any) -> Response:
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> str | None:
        """Return the first attribute value for key, if any."""
        for k, v in self.attributes:
            if k == key:
                return v
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attributes": [{"key": k, "value": v} for k, v in self.attributes],
            "data": self.data,
        }
