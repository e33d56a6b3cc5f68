"""
Ledger service: the invocation entry points of the registration ledger.

Each public coroutine is one invocation. State-changing invocations run
their checks first and then all storage work inside a single write
transaction, so a failure leaves nothing behind.

Write path order:
    1. Reject attached funds
    2. Owner guard against the stored config
    3. Field validation
    4. Next id + insert in one transaction

Invariants:
    - Checks that can fail run before any state mutation
    - Config is loaded per invocation, never cached across calls
    - Query limits are clamped to the configured default and maximum

How to change safely:
    - Keep every write inside store.write_transaction()
    - New invocations must reject funds unless they are meant to accept them
"""

from __future__ import annotations

import logging
import re

from ._version import __version__
from .config import QueryConfig
from .errors import (
    AlreadyInitializedError,
    MigrationError,
    NotInitializedError,
    PaymentNotAllowedError,
)
from .models import (
    CallContext,
    ContractInfo,
    LedgerConfig,
    ListRegistrationsResponse,
    Record,
    RecordRequest,
    RegistrationResponse,
    Response,
)
from .principal import OwnerGuard, validate_principal
from .store import RecordStore, Sequencer

logger = logging.getLogger(__name__)

CONTRACT_NAME = "registration-ledger"
CONTRACT_VERSION = __version__

SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-.]+))?(?:\+[0-9A-Za-z-.]+)?$"
)


def parse_semver(version: str) -> tuple[int, int, int, int, str]:
    """Parse a semver string into a sortable key.

    Pre-releases sort before the release they precede. Build metadata
    is ignored.

    Raises:
        ValueError: If version is not semver
    """
    match = SEMVER_RE.match(version)
    if not match:
        raise ValueError(f"Not a semver version: {version!r}")
    major, minor, patch, pre = match.groups()
    return (int(major), int(minor), int(patch), 0 if pre else 1, pre or "")


def nonpayable(ctx: CallContext) -> None:
    """Raise if the invocation carries any funds."""
    if ctx.funds:
        raise PaymentNotAllowedError([str(c) for c in ctx.funds])


class LedgerService:
    """Entry points for instantiate, record, query and migrate.

    Attributes:
        store: Record store
        sequencer: Id sequencer over the same store
        query_config: Pagination limits
        guard: Owner authorization guard

    Example:
        >>> service = LedgerService(store)
        >>> await service.instantiate(CallContext("user:admin", now), "user:admin")
        >>> resp = await service.record(
        ...     CallContext("user:admin", now),
        ...     RecordRequest("Alpha", "a" * 20, "addr1"),
        ... )
        >>> resp.data["id"]
        1
    """

    def __init__(
        self,
        store: RecordStore,
        query_config: QueryConfig | None = None,
        guard: OwnerGuard | None = None,
        contract_version: str = CONTRACT_VERSION,
    ) -> None:
        self.store = store
        self.sequencer = Sequencer(store)
        self.query_config = query_config or QueryConfig()
        self.guard = guard or OwnerGuard(enforce=True)
        self.contract_version = contract_version

    async def instantiate(self, ctx: CallContext, owner: str) -> Response:
        """Write the ledger config and version marker once.

        Raises:
            PaymentNotAllowedError: If funds are attached
            InvalidPrincipalError: If owner is malformed
            AlreadyInitializedError: If config already exists
        """
        nonpayable(ctx)
        owner = validate_principal(owner)

        with self.store.write_transaction() as conn:
            existing = self.store.load_config(conn)
            if existing is not None:
                raise AlreadyInitializedError(existing.owner)
            self.store.set_contract_info(
                conn, ContractInfo(name=CONTRACT_NAME, version=self.contract_version)
            )
            self.store.save_config(conn, LedgerConfig(owner=owner))

        logger.info(
            "Ledger instantiated",
            extra={"owner": owner, "version": self.contract_version},
        )

        return (
            Response()
            .add_attribute("method", "instantiate")
            .add_attribute("owner", owner)
        )

    async def record(self, ctx: CallContext, request: RecordRequest) -> Response:
        """Store one registration under the next id.

        Raises:
            PaymentNotAllowedError: If funds are attached
            NotInitializedError: If the guard is on and no owner is configured
            UnauthorizedError: If the sender is not the owner
            InvalidLengthError: If name or email is out of bounds
            DuplicateKeyError: If the id is already taken
            IdSpaceExhaustedError: If no further id can be stored
        """
        nonpayable(ctx)

        if self.guard.enforce:
            config = await self.store.get_config()
            if config is None:
                raise NotInitializedError()
            self.guard.check(ctx.sender, config)

        request.validate()

        record = Record(
            created=ctx.timestamp,
            name=request.name,
            email=request.email,
            address=request.address,
        )
        with self.store.write_transaction() as conn:
            record_id = self.sequencer.next_id_in(conn)
            self.store.insert(conn, record_id, record)

        logger.info(
            "Recorded registration",
            extra={"id": record_id, "registrant": request.name, "sender": ctx.sender},
        )

        response = (
            Response(data={"id": record_id})
            .add_attribute("method", "record")
            .add_attribute("name", request.name)
        )
        return response

    async def get_registration(self, record_id: int) -> RegistrationResponse:
        """Look up one registration.

        Raises:
            NotFoundError: If record_id was never written
        """
        record = await self.store.get(record_id)
        return record.into_response(record_id)

    async def list_registrations(
        self,
        start_after: int | None = None,
        limit: int | None = None,
    ) -> ListRegistrationsResponse:
        """List registrations with id > start_after in ascending order.

        Args:
            start_after: Last id seen by the caller
            limit: Page size; defaults and caps come from query_config
        """
        page_size = self.query_config.clamp(limit)
        entries = await self.store.range(start_after, page_size)
        return ListRegistrationsResponse(
            registrations=[record.into_response(record_id) for record_id, record in entries]
        )

    async def contract_info(self) -> ContractInfo:
        """Return the stored version marker.

        Raises:
            NotInitializedError: If the ledger was never instantiated
        """
        with self.store.read_snapshot() as conn:
            info = self.store.get_contract_info(conn)
        if info is None:
            raise NotInitializedError()
        return info

    async def migrate(self, ctx: CallContext) -> Response:
        """Advance the stored version marker to the running version.

        No data is transformed.

        Raises:
            MigrationError: If the stored marker is missing, foreign or not older
        """
        with self.store.write_transaction() as conn:
            stored = self.store.get_contract_info(conn)
            if stored is None:
                raise MigrationError(
                    "Ledger has no version marker",
                    running_version=self.contract_version,
                )
            if stored.name != CONTRACT_NAME:
                raise MigrationError(
                    f"Cannot migrate from {stored.name} to {CONTRACT_NAME}",
                    stored_name=stored.name,
                    stored_version=stored.version,
                    running_version=self.contract_version,
                )
            try:
                stored_key = parse_semver(stored.version)
            except ValueError as e:
                raise MigrationError(
                    str(e),
                    stored_name=stored.name,
                    stored_version=stored.version,
                    running_version=self.contract_version,
                ) from e
            if stored_key >= parse_semver(self.contract_version):
                raise MigrationError(
                    f"Cannot migrate from newer or equal version {stored.version}",
                    stored_name=stored.name,
                    stored_version=stored.version,
                    running_version=self.contract_version,
                )
            self.store.set_contract_info(
                conn, ContractInfo(name=CONTRACT_NAME, version=self.contract_version)
            )

        logger.info(
            "Ledger migrated",
            extra={
                "from_version": stored.version,
                "to_version": self.contract_version,
                "sender": ctx.sender,
            },
        )

        return (
            Response()
            .add_attribute("method", "migrate")
            .add_attribute("from_version", stored.version)
            .add_attribute("to_version", self.contract_version)
        )

    async def health(self) -> dict[str, object]:
        """Report storage reachability and ledger statistics."""
        try:
            stats = await self.store.get_stats()
        except Exception as e:
            logger.error(f"Health check failed: {e}", exc_info=True)
            return {"healthy": False, "error": str(e)}
        return {"healthy": True, "version": self.contract_version, **stats}
