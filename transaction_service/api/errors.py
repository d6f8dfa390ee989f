"""Map domain exceptions to HTTP error responses"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from transaction_service.domain.exceptions import (
    AuthenticationError,
    DomainException,
    InsufficientFundsError,
    InvalidTransactionError,
    MalformedKeyHashError,
    NotFoundError,
    RateLimitedError,
    StorageError,
)

# Most specific class first
STATUS_BY_EXCEPTION: list[tuple[type[DomainException], int]] = [
    (RateLimitedError, 429),
    (AuthenticationError, 401),
    (InvalidTransactionError, 400),
    (InsufficientFundsError, 400),
    (NotFoundError, 404),
    (MalformedKeyHashError, 500),
    (StorageError, 500),
]


def status_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def error_body(code: str, message: str) -> dict:
    """Error payload; ``error`` repeats ``code`` for backward compatibility"""
    return {"code": code, "message": message, "error": code}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logging.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": getattr(request.state, "request_id", "unknown"), "code": exc.code},
            )
        return JSONResponse(status_code=status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
        return JSONResponse(status_code=422, content=error_body("validation_error", message))
