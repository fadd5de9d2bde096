"""Core utilities for the Stagehand API.

This module exports commonly used utilities for easy importing:
    from core import get_logger
"""

from core.errors import (
    ConflictError,
    DomainError,
    ErrorKind,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from core.logger import bind_contextvars, clear_contextvars, get_logger, tenant_context

__all__ = [
    "ConflictError",
    "DomainError",
    "ErrorKind",
    "ForbiddenError",
    "NotFoundError",
    "ValidationError",
    "bind_contextvars",
    "clear_contextvars",
    "get_logger",
    "tenant_context",
]
