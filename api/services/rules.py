"""Business rules shared by the service modules.

This module handles:
- Status lifecycles for enrollments, shows and castings
- Required-text, ordering and email-format validation
- Per-item results for bulk operations
- Translating unique-index violations into ConflictError
"""

import re
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError, DomainError, ErrorKind, NotFoundError, ValidationError
from models import CastingStatus, EnrollmentStatus, ShowStatus

S = TypeVar("S", bound=Enum)
I = TypeVar("I")
T = TypeVar("T")

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# =============================================================================
# Status lifecycles
# =============================================================================
# Completed and dropped enrollments are history: re-enrolling creates a new row.

ENROLLMENT_TRANSITIONS: dict[EnrollmentStatus, frozenset[EnrollmentStatus]] = {
    EnrollmentStatus.ACTIVE: frozenset(
        {EnrollmentStatus.COMPLETED, EnrollmentStatus.DROPPED, EnrollmentStatus.INACTIVE}
    ),
    EnrollmentStatus.INACTIVE: frozenset(
        {EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED, EnrollmentStatus.DROPPED}
    ),
    EnrollmentStatus.COMPLETED: frozenset(),
    EnrollmentStatus.DROPPED: frozenset(),
}

SHOW_TRANSITIONS: dict[ShowStatus, frozenset[ShowStatus]] = {
    ShowStatus.PLANNING: frozenset(
        {
            ShowStatus.REHEARSING,
            ShowStatus.PERFORMING,
            ShowStatus.COMPLETED,
            ShowStatus.CANCELLED,
        }
    ),
    ShowStatus.REHEARSING: frozenset(
        {ShowStatus.PERFORMING, ShowStatus.COMPLETED, ShowStatus.CANCELLED}
    ),
    ShowStatus.PERFORMING: frozenset({ShowStatus.COMPLETED, ShowStatus.CANCELLED}),
    ShowStatus.COMPLETED: frozenset(),
    ShowStatus.CANCELLED: frozenset(),
}

_CASTING_ORDER = [
    CastingStatus.ASSIGNED,
    CastingStatus.CONFIRMED,
    CastingStatus.REHEARSING,
    CastingStatus.PERFORMING,
    CastingStatus.COMPLETED,
]

CASTING_TRANSITIONS: dict[CastingStatus, frozenset[CastingStatus]] = {
    status: frozenset(_CASTING_ORDER[index + 1 :])
    for index, status in enumerate(_CASTING_ORDER)
}


def check_transition(
    entity: str,
    transitions: dict[S, frozenset[S]],
    current: S,
    target: S,
) -> bool:
    """Validate a status change. Returns False when nothing changes.

    Raises:
        ValidationError: If ``target`` is not reachable from ``current``.
    """
    if current == target:
        return False
    if target not in transitions[current]:
        raise ValidationError(
            f"Cannot change {entity} status from {current.value} to {target.value}",
            current_status=current.value,
            requested_status=target.value,
        )
    return True


# =============================================================================
# Field validation
# =============================================================================


def require_text(value: str | None, message: str) -> str:
    """Return ``value`` stripped, or raise ValidationError if it is blank."""
    if value is None or not value.strip():
        raise ValidationError(message)
    return value.strip()


def check_order(low: Any, high: Any, message: str) -> None:
    """Raise ValidationError when both bounds are set and low > high."""
    if low is not None and high is not None and low > high:
        raise ValidationError(message)


def changed_fields(data: BaseModel, *non_nullable: str) -> dict[str, Any]:
    """Fields the caller set, minus explicit None for non-nullable columns."""
    values = data.model_dump(exclude_unset=True)
    for name in non_nullable:
        if name in values and values[name] is None:
            del values[name]
    return values


def normalize_email(email: str | None) -> str | None:
    """Strip an email; blank becomes None."""
    if email is None:
        return None
    email = email.strip()
    return email or None


def check_email_format(email: str | None, message: str) -> None:
    if email is not None and not EMAIL_PATTERN.match(email):
        raise ValidationError(message)


# =============================================================================
# Unique-index backstop
# =============================================================================


@asynccontextmanager
async def unique_guard(
    db: AsyncSession, message: str, **context: Any
) -> AsyncIterator[None]:
    """Run writes in a savepoint; a unique-index violation becomes ConflictError.

    The savepoint keeps the surrounding transaction usable after the
    violation, which bulk operations rely on.
    """
    try:
        async with db.begin_nested():
            yield
    except IntegrityError as e:
        logger.warning("integrity.conflict", conflict=message, **context)
        raise ConflictError(message, **context) from e


# =============================================================================
# Bulk operations
# =============================================================================


@dataclass
class BulkItemResult(Generic[T]):
    """Outcome for one input of a bulk operation, in input order."""

    index: int
    entity: T | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


@dataclass
class BulkResult(Generic[T]):
    items: list[BulkItemResult[T]] = field(default_factory=list)

    @property
    def succeeded(self) -> list[T]:
        return [item.entity for item in self.items if item.ok]

    @property
    def failed(self) -> list[BulkItemResult[T]]:
        return [item for item in self.items if not item.ok]


async def run_bulk(
    operation: str,
    inputs: Iterable[I],
    apply: Callable[[I], Awaitable[T | None]],
    not_found_message: str,
    **log_context: Any,
) -> BulkResult[T]:
    """Apply ``apply`` to each input in order, collecting per-item results.

    A DomainError fails only its own item. ``apply`` returning None is
    reported as a not-found failure. Any other exception propagates.
    """
    result: BulkResult[T] = BulkResult()
    for index, item in enumerate(inputs):
        try:
            entity = await apply(item)
            if entity is None:
                raise NotFoundError(not_found_message)
        except DomainError as e:
            logger.warning(
                f"{operation}.item_failed",
                index=index,
                error_kind=e.kind.value,
                error_message=e.message,
                **log_context,
            )
            result.items.append(
                BulkItemResult(index=index, error_kind=e.kind, error_message=e.message)
            )
            continue
        result.items.append(BulkItemResult(index=index, entity=entity))

    logger.info(
        f"{operation}.completed",
        succeeded=len(result.succeeded),
        failed=len(result.failed),
        **log_context,
    )
    return result
