"""
HTTP server implementation for the registration ledger.

This module provides the REST API over LedgerService. The HTTP host plays
the role of the execution environment: it authenticates the sender from
the X-Actor header, reads attached funds from X-Funds and stamps each
invocation with its own clock.

Endpoints:
    POST /v1/instantiate            InstantiateMsg
    POST /v1/execute                ExecuteMsg
    POST /v1/query                  QueryMsg
    POST /v1/migrate                MigrateMsg
    GET  /v1/registrations/{id}     Registration by id
    GET  /v1/registrations          Page of registrations
    GET  /v1/contract               Stored name and version
    GET  /v1/health                 Health and statistics

Invariants:
    - Mutating endpoints require the X-Actor header
    - HTTP endpoints have the same semantics as the message endpoints
    - Errors use the {"error": {code, message, details}} body

How to change safely:
    - Keep message endpoints backward compatible
    - Version the API if breaking changes are needed
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..models import CallContext, Coin
from ..principal import OwnerGuard
from ..service import LedgerService
from ..store import RecordStore
from .error_handlers import register_error_handlers
from .messages import (
    ContractInfoModel,
    ExecuteMsg,
    ExecuteResponseModel,
    InstantiateMsg,
    ListRegistrationsModel,
    MAX_LIMIT_U32,
    MAX_U64,
    MigrateMsg,
    QueryMsg,
    RegistrationModel,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Registration Ledger"])


def build_service(config: ServerConfig) -> LedgerService:
    """Create a LedgerService over the configured SQLite store."""
    store = RecordStore(
        data_dir=config.storage.data_dir,
        db_name=config.storage.db_name,
        wal_mode=config.storage.wal_mode,
        busy_timeout_ms=config.storage.busy_timeout_ms,
        cache_size_pages=config.storage.cache_size_pages,
    )
    return LedgerService(
        store,
        query_config=config.query,
        guard=OwnerGuard(enforce=config.auth.enforce_owner),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create and initialize the ledger store on startup."""
    if getattr(app.state, "service", None) is None:
        app.state.service = build_service(app.state.config)
    await app.state.service.store.initialize()
    logger.info("Ledger API ready", extra={"db_path": str(app.state.service.store.db_path)})
    yield


def _default_clock() -> int:
    return int(time.time())


def create_app(
    config: ServerConfig | None = None,
    service: LedgerService | None = None,
    clock: Callable[[], int] | None = None,
) -> FastAPI:
    """Create the ledger FastAPI application.

    Args:
        config: Server configuration (defaults when omitted)
        service: Pre-built service; built from config on startup if omitted
        clock: Source of invocation timestamps in unix seconds

    Returns:
        FastAPI application
    """
    config = config or ServerConfig()

    app = FastAPI(
        title="Registration Ledger",
        description="Append-only registration ledger with sequential ids.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service = service
    app.state.clock = clock or _default_clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.http.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Actor", "X-Funds"],
    )

    register_error_handlers(app)
    app.include_router(router)
    return app


# --- Dependencies ---


def get_service(request: Request) -> LedgerService:
    """Get the ledger service from app state."""
    return request.app.state.service


def parse_funds(header: str | None) -> tuple[Coin, ...]:
    """Parse an X-Funds header like "10uatom,5ujuno".

    Raises:
        HTTPException: If any coin is malformed
    """
    if not header:
        return ()
    try:
        return tuple(Coin.parse(part) for part in header.split(",") if part.strip())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def get_call_context(
    request: Request,
    x_actor: str | None = Header(None),
    x_funds: str | None = Header(None),
) -> CallContext:
    """Build the invocation context from headers and the server clock."""
    if not x_actor:
        raise HTTPException(status_code=400, detail="X-Actor header is required")
    return CallContext(
        sender=x_actor,
        timestamp=request.app.state.clock(),
        funds=parse_funds(x_funds),
    )


# --- Message routes ---


@router.post("/instantiate", response_model=ExecuteResponseModel)
async def instantiate(
    msg: InstantiateMsg,
    ctx: CallContext = Depends(get_call_context),
    service: LedgerService = Depends(get_service),
):
    """Initialize the ledger owner. Allowed once."""
    resp = await service.instantiate(ctx, msg.owner)
    return ExecuteResponseModel.from_response(resp)


@router.post("/execute", response_model=ExecuteResponseModel)
async def execute(
    msg: ExecuteMsg,
    ctx: CallContext = Depends(get_call_context),
    service: LedgerService = Depends(get_service),
):
    """Dispatch a state-changing message."""
    resp = await service.record(ctx, msg.record.to_request())
    return ExecuteResponseModel.from_response(resp)


@router.post("/query")
async def query(
    msg: QueryMsg,
    service: LedgerService = Depends(get_service),
) -> dict[str, Any]:
    """Dispatch a read-only message."""
    if msg.registration is not None:
        resp = await service.get_registration(msg.registration.id)
        return RegistrationModel.from_response(resp).model_dump()

    list_msg = msg.list_registrations
    page = await service.list_registrations(list_msg.start_after, list_msg.limit)
    return ListRegistrationsModel.from_response(page).model_dump()


@router.post("/migrate", response_model=ExecuteResponseModel)
async def migrate(
    msg: MigrateMsg,
    ctx: CallContext = Depends(get_call_context),
    service: LedgerService = Depends(get_service),
):
    """Advance the stored version marker to the running version."""
    resp = await service.migrate(ctx)
    return ExecuteResponseModel.from_response(resp)


# --- REST routes ---


@router.get("/registrations/{record_id}", response_model=RegistrationModel)
async def get_registration(
    record_id: int = Path(..., ge=0, le=MAX_U64),
    service: LedgerService = Depends(get_service),
):
    """Get one registration by id."""
    resp = await service.get_registration(record_id)
    return RegistrationModel.from_response(resp)


@router.get("/registrations", response_model=ListRegistrationsModel)
async def list_registrations(
    start_after: int | None = Query(None, ge=0, le=MAX_U64),
    limit: int | None = Query(None, ge=0, le=MAX_LIMIT_U32),
    service: LedgerService = Depends(get_service),
):
    """List registrations after start_after in ascending id order."""
    page = await service.list_registrations(start_after, limit)
    return ListRegistrationsModel.from_response(page)


@router.get("/contract", response_model=ContractInfoModel)
async def contract_info(service: LedgerService = Depends(get_service)):
    """Get the stored contract name and version."""
    return ContractInfoModel.from_info(await service.contract_info())


@router.get("/health")
async def health(service: LedgerService = Depends(get_service)):
    """Health check with ledger statistics."""
    result = await service.health()
    status_code = 200 if result.get("healthy") else 503
    return JSONResponse(result, status_code=status_code)
