from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import get_api_logger_safe, get_error_logger_safe
from core.logging.correlation import CorrelationIdManager
from core.trading.models import Rejection, RejectionKind
from core.utils.exceptions import (
    ConcurrentModificationError,
    QuoteUnavailableError,
    StoreFailureError,
)

logger = get_api_logger_safe("api.middleware.error_handling")
error_logger = get_error_logger_safe("api.errors")

# Client-fault rejections; server faults are exceptions and map to 500
REJECTION_STATUS = {
    RejectionKind.INVALID_REQUEST: 400,
    RejectionKind.INSUFFICIENT_CASH: 400,
    RejectionKind.INSUFFICIENT_HOLDINGS: 400,
    RejectionKind.LIMIT_NOT_FILLED: 409,
}


def error_body(error: str, kind: str, details: dict = None) -> dict:
    body = {"error": error, "kind": kind}
    if details:
        body["details"] = details
    return body


def rejection_response(rejection: Rejection) -> JSONResponse:
    return JSONResponse(
        status_code=REJECTION_STATUS[rejection.kind],
        content=error_body(rejection.message, rejection.kind.value, rejection.details),
    )


def _error_field(error: dict) -> str:
    return ".".join(str(part) for part in error.get("loc", ()) if part != "body")


def validation_message(path: str, errors: list) -> str:
    """Pydantic's message for the first malformed value; absent input keeps the generic text."""
    malformed = [e for e in errors if e.get("type") != "missing"]
    if malformed:
        field = _error_field(malformed[0])
        message = malformed[0].get("msg", "Invalid value")
        return f"{field}: {message}" if field else message
    return "Missing trade details." if path.endswith("/trade") else "Invalid request."


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Malformed bodies are an InvalidRequest rejection, not FastAPI's 422
    errors = exc.errors() if hasattr(exc, "errors") else []
    logger.info("Request validation failed", path=request.url.path, errors=len(errors))
    fields = [_error_field(e) for e in errors]
    return JSONResponse(
        status_code=400,
        content=error_body(validation_message(request.url.path, errors),
                           RejectionKind.INVALID_REQUEST.value,
                           {"fields": [f for f in fields if f]}),
    )


async def quote_unavailable_handler(request: Request, exc: QuoteUnavailableError) -> JSONResponse:
    error_logger.error("Market data unavailable",
                       path=request.url.path,
                       symbol=exc.symbol,
                       source=exc.source,
                       error=exc.message)
    return JSONResponse(
        status_code=500,
        content=error_body("Failed to fetch market data.", "QuoteUnavailable",
                           {"symbol": exc.symbol, "source": exc.source,
                            "correlation_id": exc.correlation_id}),
    )


async def store_failure_handler(request: Request, exc: StoreFailureError) -> JSONResponse:
    error_logger.error("Account store failure",
                       path=request.url.path,
                       operation=exc.operation,
                       error=exc.message)
    return JSONResponse(
        status_code=500,
        content=error_body("Account store operation failed; re-check the portfolio before retrying.",
                           "StoreFailure", {"operation": exc.operation,
                                           "correlation_id": exc.correlation_id}),
    )


async def concurrent_modification_handler(request: Request,
                                          exc: ConcurrentModificationError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=error_body("Account changed while the order was processed; re-check and resubmit.",
                           "ConcurrentModification",
                           {"expected_version": exc.expected_version,
                            "actual_version": exc.actual_version,
                            "correlation_id": exc.correlation_id}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(QuoteUnavailableError, quote_unavailable_handler)
    app.add_exception_handler(StoreFailureError, store_failure_handler)
    app.add_exception_handler(ConcurrentModificationError, concurrent_modification_handler)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException as e:
            # Let FastAPI handle HTTP exceptions normally
            raise e
        except Exception as e:
            # Log the error
            error_logger.error(
                "Unhandled API exception",
                path=request.url.path,
                method=request.method,
                error=str(e),
                exc_info=True
            )

            # Return a structured error response
            return JSONResponse(
                status_code=500,
                content=error_body("Internal server error", "InternalError",
                                   {"path": request.url.path,
                                    "correlation_id": CorrelationIdManager.get_correlation_id()}),
            )
