"""
Global exception handlers for the ledger HTTP API.

Invariants:
    - LedgerError -> {"error": {code, message, details}} with a mapped status
    - HTTPException -> same body shape with the raised status
    - RequestValidationError -> 400 with field-level details
    - Exception (catch-all) -> 500, never leaks internal details
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import LedgerError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "PAYMENT_NOT_ALLOWED": status.HTTP_402_PAYMENT_REQUIRED,
    "INVALID_LENGTH": status.HTTP_400_BAD_REQUEST,
    "INVALID_PRINCIPAL": status.HTTP_400_BAD_REQUEST,
    "ALREADY_INITIALIZED": status.HTTP_409_CONFLICT,
    "NOT_INITIALIZED": status.HTTP_409_CONFLICT,
    "MIGRATION_ERROR": status.HTTP_409_CONFLICT,
    "DUPLICATE_KEY": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "ID_SPACE_EXHAUSTED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        log = logger.error if status_code >= 500 else logger.info
        log(
            f"LedgerError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": "BAD_REQUEST" if exc.status_code == 400 else "HTTP_ERROR",
                    "message": str(exc.detail),
                    "details": {},
                }
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "INVALID_REQUEST",
                    "message": "Request validation failed",
                    "details": {
                        "errors": [
                            {
                                "loc": [str(part) for part in err.get("loc", ())],
                                "msg": err.get("msg", ""),
                            }
                            for err in exc.errors()
                        ]
                    },
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL",
                    "message": "An unexpected error occurred",
                    "details": {},
                }
            },
        )
