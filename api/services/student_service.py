"""Student service.

This module handles:
- Student creation/update with name and per-organization email checks
- Listing, recent and active lookups
- Grade-level statistics for the dashboard
- Bulk update/delete with per-item results

Email uniqueness is case-insensitive and only applies when an email is set.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError
from models import Student
from repositories.base import Page
from repositories.student_repository import StudentRepository
from schemas import (
    Pagination,
    StudentCreate,
    StudentFilters,
    StudentStats,
    StudentUpdate,
)
from services.rules import (
    BulkResult,
    changed_fields,
    normalize_email,
    require_text,
    run_bulk,
)

logger = get_logger(__name__)

NOT_SPECIFIED_GRADE = "Not specified"
EMAIL_TAKEN_MESSAGE = "A student with this email already exists in your organization"


async def _check_email_available(
    repo: StudentRepository,
    organization_id: str,
    email: str | None,
    exclude_id: str | None = None,
) -> None:
    if email is None:
        return
    if await repo.get_by_email(organization_id, email, exclude_id=exclude_id):
        raise ConflictError(EMAIL_TAKEN_MESSAGE, organization_id=organization_id)


async def create_student(
    db: AsyncSession, organization_id: str, data: StudentCreate
) -> Student:
    """Create a student in the organization.

    Raises:
        ValidationError: If first or last name is blank.
        ConflictError: If another student of the organization has the email.
    """
    values = data.model_dump()
    values["first_name"] = require_text(data.first_name, "First name is required")
    values["last_name"] = require_text(data.last_name, "Last name is required")
    values["email"] = normalize_email(data.email)

    repo = StudentRepository(db)
    await _check_email_available(repo, organization_id, values["email"])
    student = await repo.create(organization_id, **values)

    logger.info("student.created", organization_id=organization_id, student_id=student.id)
    return student


async def update_student(
    db: AsyncSession, organization_id: str, student_id: str, data: StudentUpdate
) -> Student | None:
    """Apply the fields set on ``data``. Returns None if the student is unknown.

    Raises:
        ValidationError: If a name is set to blank.
        ConflictError: If the new email belongs to another student.
    """
    repo = StudentRepository(db)
    if not await repo.exists(student_id, organization_id):
        return None

    values = changed_fields(data, "is_active")
    if "first_name" in values:
        values["first_name"] = require_text(values["first_name"], "First name cannot be empty")
    if "last_name" in values:
        values["last_name"] = require_text(values["last_name"], "Last name cannot be empty")
    if "email" in values:
        values["email"] = normalize_email(values["email"])
        await _check_email_available(
            repo, organization_id, values["email"], exclude_id=student_id
        )

    return await repo.update(student_id, organization_id, **values)


async def delete_student(db: AsyncSession, organization_id: str, student_id: str) -> bool:
    """Delete a student. Enrollments and castings cascade with it."""
    deleted = await StudentRepository(db).delete(student_id, organization_id)
    if deleted:
        logger.info("student.deleted", organization_id=organization_id, student_id=student_id)
    return deleted


async def get_student(
    db: AsyncSession, organization_id: str, student_id: str
) -> Student | None:
    return await StudentRepository(db).get_by_id(student_id, organization_id)


async def list_students(
    db: AsyncSession,
    organization_id: str,
    filters: StudentFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[Student]:
    return await StudentRepository(db).find_all(organization_id, filters, pagination)


async def get_active_students(db: AsyncSession, organization_id: str) -> list[Student]:
    return await StudentRepository(db).get_active(organization_id)


async def get_recent_students(
    db: AsyncSession, organization_id: str, limit: int = 10
) -> list[Student]:
    return await StudentRepository(db).get_recent(organization_id, limit)


async def get_student_stats(db: AsyncSession, organization_id: str) -> StudentStats:
    """Count active students per grade level; unset grades are grouped together."""
    counts = await StudentRepository(db).count_active_by_grade(organization_id)
    by_grade: dict[str, int] = {}
    for grade, count in counts.items():
        key = grade or NOT_SPECIFIED_GRADE
        by_grade[key] = by_grade.get(key, 0) + count
    return StudentStats(total_active=sum(by_grade.values()), by_grade=by_grade)


async def bulk_update_students(
    db: AsyncSession,
    organization_id: str,
    updates: list[tuple[str, StudentUpdate]],
) -> BulkResult[Student]:
    """Update several students in order; one failure does not stop the rest."""

    async def _apply(item: tuple[str, StudentUpdate]) -> Student | None:
        student_id, data = item
        return await update_student(db, organization_id, student_id, data)

    return await run_bulk(
        "bulk_update_students",
        updates,
        _apply,
        not_found_message="Student not found",
        organization_id=organization_id,
    )


async def bulk_delete_students(
    db: AsyncSession, organization_id: str, student_ids: list[str]
) -> int:
    """Delete the given students; ids outside the organization are ignored."""
    deleted = await StudentRepository(db).delete_many(student_ids, organization_id)
    logger.info(
        "students.bulk_deleted",
        organization_id=organization_id,
        requested=len(student_ids),
        deleted=deleted,
    )
    return deleted
