"""Domain error taxonomy and its HTTP mapping.

Services raise one of four typed errors. Each carries an ``ErrorKind`` tag,
and the HTTP boundary picks a status code from the tag alone:

    ValidationError -> 422    malformed / empty / out-of-range input
    NotFoundError   -> 404    id does not resolve inside the tenant
    ConflictError   -> 409    uniqueness, capacity, quorum or linkage rule
    ForbiddenError  -> 403    role-based authorization failure

Usage:
    from core.errors import register_exception_handlers
    register_exception_handlers(app)
"""

from enum import StrEnum
from typing import Any, ClassVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.logger import get_logger

logger = get_logger(__name__)


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.FORBIDDEN: 403,
}


class DomainError(Exception):
    """Base class for business-rule failures raised by the service layer.

    ``context`` holds structured identifiers (ids, limits) for logging; it is
    never sent back to the caller.
    """

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(DomainError):
    """Raised when input is malformed, empty or out of range."""

    kind = ErrorKind.VALIDATION


class NotFoundError(DomainError):
    """Raised when an id does not resolve within the tenant."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(DomainError):
    """Raised when a write would break a uniqueness, capacity or quorum rule."""

    kind = ErrorKind.CONFLICT


class ForbiddenError(DomainError):
    """Raised when the acting member's role does not allow the operation."""

    kind = ErrorKind.FORBIDDEN


def status_code_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND[kind]


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate a DomainError into a JSON response using its kind tag."""
    if not isinstance(exc, DomainError):
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

    logger.warning(
        "domain.error",
        error_kind=exc.kind.value,
        error_message=exc.message,
        path=request.url.path,
        method=request.method,
        **exc.context,
    )
    return JSONResponse(
        status_code=status_code_for(exc.kind),
        content={"detail": exc.message, "kind": exc.kind.value},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
