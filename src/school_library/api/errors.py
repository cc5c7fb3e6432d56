"""
Exception handlers mapping domain errors to HTTP responses.

Every handled error answers with ``{"detail": <message>, "error": <class name>}``.
"""

import logging

import pydantic
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..database.errors import (
    AuthenticationError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryException,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; BusinessRuleError is covered by ValidationError
STATUS_CODES: list[tuple[type[RepositoryException], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
]


def status_code_for(exc: RepositoryException) -> int:
    for exc_type, code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: Exception, detail) -> dict:
    return {"detail": detail, "error": type(exc).__name__}


async def repository_exception_handler(request: Request, exc: RepositoryException) -> JSONResponse:
    code = status_code_for(exc)
    if code >= 500:
        logger.error("Unhandled repository error on %s %s: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=code, content=error_body(exc, str(exc)), headers=headers)


async def pydantic_validation_handler(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Payloads validated inside services (e.g. catalog entries) fail like request bodies."""
    logger.debug("Payload rejected on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(exc, exc.errors(include_url=False, include_context=False)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RepositoryException, repository_exception_handler)
    app.add_exception_handler(pydantic.ValidationError, pydantic_validation_handler)
