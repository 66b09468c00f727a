"""Translate domain exceptions into JSON error responses"""

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rentverse_bookings.domain.exceptions import (
    AlreadyPaidError,
    ConflictError,
    DomainException,
    NotFoundError,
    UnauthorizedError,
    UpstreamFailure,
    ValidationError,
)

# Most specific first
STATUS_BY_EXCEPTION = [
    (NotFoundError, 404),
    (AlreadyPaidError, 409),
    (ConflictError, 409),
    (ValidationError, 400),
    (UnauthorizedError, 401),
    (UpstreamFailure, 502),
]


def status_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = status_for(exc)
    request_id = getattr(request.state, "request_id", "unknown")
    if status_code >= 500 or isinstance(exc, UpstreamFailure):
        logging.error(f"{type(exc).__name__}: {exc}", extra={"request_id": request_id})
    else:
        logging.warning(f"{type(exc).__name__}: {exc}", extra={"request_id": request_id})

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": type(exc).__name__, "detail": str(exc)},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": err.get("loc"), "msg": str(err.get("msg")), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "Validation failed", "detail": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logging.error(f"Unexpected error: {exc}", extra={"request_id": request_id}, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "InternalServerError", "detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
