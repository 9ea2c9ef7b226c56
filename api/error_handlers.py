"""Centralized error handling for API routers."""

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from api.schemas.responses import ErrorResponse
from core.logging import get_api_logger_safe
from core.trading.outcomes import FailureKind, TradeFailure
from core.utils.exceptions import (
    AccountExistsError, AccountNotFoundError, LedgerException, LedgerStorageError,
    UnknownSymbolError,
)

logger = get_api_logger_safe("api.error_handlers")

FAILURE_STATUS = {
    FailureKind.INVALID_SIDE: 400,
    FailureKind.UNKNOWN_SYMBOL: 400,
    FailureKind.INVALID_QUANTITY: 400,
    FailureKind.ACCOUNT_NOT_FOUND: 404,
    FailureKind.IDEMPOTENCY_CONFLICT: 409,
    FailureKind.PRICE_UNAVAILABLE: 503,
    FailureKind.INSUFFICIENT_FUNDS: 400,
    FailureKind.INSUFFICIENT_SHARES: 400,
    FailureKind.STORAGE_FAILURE: 500,
}


def failure_response(failure: TradeFailure) -> JSONResponse:
    """Map a trade failure to its HTTP status and error body."""
    return JSONResponse(
        status_code=FAILURE_STATUS[failure.kind],
        content=ErrorResponse.from_failure(failure).model_dump(mode="json"),
    )


def _status_for(exc: LedgerException) -> int:
    if isinstance(exc, AccountNotFoundError):
        return 404
    if isinstance(exc, AccountExistsError):
        return 409
    if isinstance(exc, UnknownSymbolError):
        return 400
    if isinstance(exc, LedgerStorageError):
        return 500
    return 400


async def ledger_exception_handler(request: Request, exc: LedgerException):
    """Handle ledger exceptions raised outside the trade engine."""
    status_code = _status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log("Ledger error", error=exc.message, error_type=type(exc).__name__,
        status_code=status_code, path=request.url.path, method=request.method)

    # Storage faults stay opaque to clients
    message = "Transaction failed" if status_code >= 500 else exc.message
    details = {} if status_code >= 500 else exc.details
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, details=details).model_dump(mode="json"),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle FastAPI HTTP exceptions with consistent format."""
    logger.warning("HTTP exception", detail=str(exc.detail), status_code=exc.status_code,
                   path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )
