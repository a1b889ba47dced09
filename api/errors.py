"""Maps domain exceptions onto HTTP responses: {"error": <code>, "detail": <message>}."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PermitError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from services.application_service import to_validation_error

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[PermitError], int] = {
    ValidationError: 422,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    InvalidTransitionError: 409,
    ConflictError: 409,
    StorageError: 503,
}

_LOCATIONS = ("body", "query", "path", "header")


def status_code_for(exc: PermitError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_response(exc: PermitError) -> JSONResponse:
    content: dict = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, ValidationError) and exc.fields:
        content["fields"] = exc.fields
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=status_code_for(exc), content=content, headers=headers)


async def permit_error_handler(request: Request, exc: PermitError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: storage unavailable", request.method, request.url.path)
    return error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = tuple(err.get("loc", ()))
        if loc and loc[0] in _LOCATIONS:
            loc = loc[1:]
        errors.append({**err, "loc": loc})
    return error_response(to_validation_error(errors))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PermitError, permit_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
