"""Class and enrollment service.

This module handles:
- Class creation/update with name, capacity, age-range, date-order and
  schedule validation
- Enrollment with tenant, uniqueness and capacity checks
- Enrollment status lifecycle (unenroll is a soft transition to dropped)
- Bulk enrollment with per-item results
- Class statistics

Enrollment checks run under tenant_lock("class", class_id) so two callers
cannot both take the last seat; the active-pair unique index is the
backstop for anything that bypasses the lock.
"""

from datetime import time

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError, NotFoundError, ValidationError
from core.locks import tenant_lock
from models import ClassEnrollment, EnrollmentStatus, SchoolClass
from repositories.base import Page
from repositories.class_repository import ClassRepository, EnrollmentRepository
from repositories.student_repository import StudentRepository
from schemas import (
    ClassCreate,
    ClassFilters,
    ClassSchedule,
    ClassStats,
    ClassUpdate,
    EnrollmentCreate,
    EnrollmentFilters,
    EnrollmentUpdate,
    Pagination,
)
from services.rules import (
    ENROLLMENT_TRANSITIONS,
    BulkResult,
    changed_fields,
    check_order,
    check_transition,
    require_text,
    run_bulk,
    unique_guard,
)

logger = get_logger(__name__)

CLASS_NOT_FOUND = "Class not found"
ALREADY_ENROLLED = "Student is already enrolled in this class"
AT_CAPACITY = "Class is at maximum capacity"


def _format_time(value: time) -> str:
    return value.strftime("%H:%M")


def _schedule_to_json(schedule: ClassSchedule | None) -> dict | None:
    """Validate a schedule and convert it to its stored JSON shape."""
    if schedule is None:
        return None
    if schedule.start_time >= schedule.end_time:
        raise ValidationError("Schedule start time must be before end time")
    return {
        "days": list(schedule.days),
        "start_time": _format_time(schedule.start_time),
        "end_time": _format_time(schedule.end_time),
        "timezone": schedule.timezone,
    }


def _validate_class_fields(values: dict, current: SchoolClass | None = None) -> None:
    """Check capacity, age range and dates, merging unset keys from ``current``."""

    def merged(name: str):
        if name in values:
            return values[name]
        return getattr(current, name) if current is not None else None

    max_students = values.get("max_students")
    if max_students is not None and max_students < 1:
        raise ValidationError("Maximum students must be at least 1")
    check_order(
        merged("age_range_min"),
        merged("age_range_max"),
        "Minimum age cannot be greater than maximum age",
    )
    check_order(
        merged("start_date"),
        merged("end_date"),
        "Start date cannot be after end date",
    )


async def _check_seat_available(
    repo: EnrollmentRepository,
    organization_id: str,
    school_class: SchoolClass,
    student_id: str,
) -> None:
    """Caller must hold tenant_lock("class", school_class.id)."""
    if await repo.is_enrolled(organization_id, school_class.id, student_id):
        raise ConflictError(
            ALREADY_ENROLLED, class_id=school_class.id, student_id=student_id
        )
    if school_class.max_students is not None:
        active = await repo.count_active_by_class(organization_id, school_class.id)
        if active >= school_class.max_students:
            logger.warning(
                "enrollment.capacity_reached",
                organization_id=organization_id,
                class_id=school_class.id,
                max_students=school_class.max_students,
            )
            raise ConflictError(
                AT_CAPACITY,
                class_id=school_class.id,
                max_students=school_class.max_students,
            )


# =============================================================================
# Classes
# =============================================================================


async def create_class(
    db: AsyncSession, organization_id: str, data: ClassCreate
) -> SchoolClass:
    """Create a class.

    Raises:
        ValidationError: Blank name, max_students < 1, min age > max age,
            start date after end date, or a schedule ending before it starts.
    """
    values = data.model_dump(exclude={"schedule"})
    values["name"] = require_text(data.name, "Class name is required")
    _validate_class_fields(values)
    values["schedule"] = _schedule_to_json(data.schedule)

    school_class = await ClassRepository(db).create(organization_id, **values)
    logger.info("class.created", organization_id=organization_id, class_id=school_class.id)
    return school_class


async def update_class(
    db: AsyncSession, organization_id: str, class_id: str, data: ClassUpdate
) -> SchoolClass | None:
    """Apply the fields set on ``data``. Returns None if the class is unknown.

    Range and date checks compare the merged (stored + incoming) values.
    """
    repo = ClassRepository(db)
    current = await repo.get_by_id(class_id, organization_id)
    if current is None:
        return None

    values = changed_fields(data, "is_active")
    if "name" in values:
        values["name"] = require_text(values["name"], "Class name cannot be empty")
    _validate_class_fields(values, current)
    if "schedule" in values:
        values["schedule"] = _schedule_to_json(data.schedule)

    return await repo.update(class_id, organization_id, **values)


async def delete_class(db: AsyncSession, organization_id: str, class_id: str) -> bool:
    """Delete a class with no active enrollments.

    Raises:
        ConflictError: If any enrollment of the class is active.
    """
    enrollment_repo = EnrollmentRepository(db)
    async with tenant_lock(db, "class", class_id):
        if await enrollment_repo.count_active_by_class(organization_id, class_id) > 0:
            raise ConflictError(
                "Cannot delete class with active student enrollments", class_id=class_id
            )
        deleted = await ClassRepository(db).delete(class_id, organization_id)
    if deleted:
        logger.info("class.deleted", organization_id=organization_id, class_id=class_id)
    return deleted


async def get_class(
    db: AsyncSession, organization_id: str, class_id: str
) -> SchoolClass | None:
    return await ClassRepository(db).get_by_id(class_id, organization_id)


async def list_classes(
    db: AsyncSession,
    organization_id: str,
    filters: ClassFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[SchoolClass]:
    return await ClassRepository(db).find_all(organization_id, filters, pagination)


async def get_active_classes(db: AsyncSession, organization_id: str) -> list[SchoolClass]:
    return await ClassRepository(db).get_active(organization_id)


async def get_classes_by_teacher(
    db: AsyncSession, organization_id: str, teacher_id: str
) -> list[SchoolClass]:
    return await ClassRepository(db).get_by_teacher(organization_id, teacher_id)


async def get_recent_classes(
    db: AsyncSession, organization_id: str, limit: int = 10
) -> list[SchoolClass]:
    return await ClassRepository(db).get_recent(organization_id, limit)


async def get_class_stats(db: AsyncSession, organization_id: str, class_id: str) -> ClassStats:
    """Enrollment counts per status for one class.

    Raises:
        NotFoundError: If the class is not in the organization.
    """
    if not await ClassRepository(db).exists(class_id, organization_id):
        raise NotFoundError(CLASS_NOT_FOUND, class_id=class_id)
    counts = await EnrollmentRepository(db).count_by_status(organization_id, class_id)
    return ClassStats(
        total_enrolled=sum(counts.values()),
        active=counts.get(EnrollmentStatus.ACTIVE, 0),
        completed=counts.get(EnrollmentStatus.COMPLETED, 0),
        dropped=counts.get(EnrollmentStatus.DROPPED, 0),
        inactive=counts.get(EnrollmentStatus.INACTIVE, 0),
    )


async def get_total_enrollments(db: AsyncSession, organization_id: str) -> int:
    """Active enrollments summed across the organization's active classes."""
    return await EnrollmentRepository(db).count_active_in_active_classes(organization_id)


# =============================================================================
# Enrollments
# =============================================================================


async def enroll_student(
    db: AsyncSession, organization_id: str, data: EnrollmentCreate
) -> ClassEnrollment:
    """Enroll a student in a class.

    Raises:
        NotFoundError: If the class or student is not in the organization.
        ConflictError: If the student already holds an active enrollment in
            the class, or the class is at capacity.
    """
    repo = EnrollmentRepository(db)
    async with tenant_lock(db, "class", data.class_id):
        school_class = await ClassRepository(db).get_by_id(data.class_id, organization_id)
        if school_class is None:
            raise NotFoundError(CLASS_NOT_FOUND, class_id=data.class_id)
        if not await StudentRepository(db).exists(data.student_id, organization_id):
            raise NotFoundError("Student not found", student_id=data.student_id)

        await _check_seat_available(repo, organization_id, school_class, data.student_id)
        async with unique_guard(
            db, ALREADY_ENROLLED, class_id=data.class_id, student_id=data.student_id
        ):
            enrollment = await repo.create(
                organization_id,
                class_id=data.class_id,
                student_id=data.student_id,
                notes=data.notes,
                status=EnrollmentStatus.ACTIVE,
            )

    logger.info(
        "enrollment.created",
        organization_id=organization_id,
        class_id=data.class_id,
        student_id=data.student_id,
    )
    return enrollment


async def unenroll_student(
    db: AsyncSession, organization_id: str, enrollment_id: str
) -> ClassEnrollment | None:
    """Mark an enrollment dropped. Rows already dropped or completed are returned as-is."""
    repo = EnrollmentRepository(db)
    enrollment = await repo.get_by_id(enrollment_id, organization_id)
    if enrollment is None:
        return None
    if enrollment.status in (EnrollmentStatus.DROPPED, EnrollmentStatus.COMPLETED):
        return enrollment
    return await repo.update(enrollment_id, organization_id, status=EnrollmentStatus.DROPPED)


async def update_enrollment(
    db: AsyncSession, organization_id: str, enrollment_id: str, data: EnrollmentUpdate
) -> ClassEnrollment | None:
    """Update status and/or notes. Returns None if the enrollment is unknown.

    Raises:
        ValidationError: If the status change is not allowed.
        ConflictError: If re-activating would duplicate an active enrollment
            or exceed capacity.
    """
    repo = EnrollmentRepository(db)
    enrollment = await repo.get_by_id(enrollment_id, organization_id)
    if enrollment is None:
        return None

    values = changed_fields(data, "status")
    if "status" in values and not check_transition(
        "enrollment", ENROLLMENT_TRANSITIONS, enrollment.status, values["status"]
    ):
        del values["status"]

    if values.get("status") != EnrollmentStatus.ACTIVE:
        return await repo.update(enrollment_id, organization_id, **values)

    school_class = await ClassRepository(db).get_by_id(enrollment.class_id, organization_id)
    if school_class is None:
        raise NotFoundError(CLASS_NOT_FOUND, class_id=enrollment.class_id)
    async with tenant_lock(db, "class", school_class.id):
        await _check_seat_available(repo, organization_id, school_class, enrollment.student_id)
        async with unique_guard(
            db, ALREADY_ENROLLED, class_id=school_class.id, student_id=enrollment.student_id
        ):
            return await repo.update(enrollment_id, organization_id, **values)


async def get_enrollment(
    db: AsyncSession, organization_id: str, enrollment_id: str
) -> ClassEnrollment | None:
    return await EnrollmentRepository(db).get_by_id(enrollment_id, organization_id)


async def list_enrollments(
    db: AsyncSession,
    organization_id: str,
    filters: EnrollmentFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[ClassEnrollment]:
    return await EnrollmentRepository(db).find_all(organization_id, filters, pagination)


async def get_enrollments_by_class(
    db: AsyncSession, organization_id: str, class_id: str
) -> list[ClassEnrollment]:
    return await EnrollmentRepository(db).get_by_class(organization_id, class_id)


async def get_enrollments_by_student(
    db: AsyncSession, organization_id: str, student_id: str
) -> list[ClassEnrollment]:
    return await EnrollmentRepository(db).get_by_student(organization_id, student_id)


async def bulk_enroll_students(
    db: AsyncSession, organization_id: str, class_id: str, student_ids: list[str]
) -> BulkResult[ClassEnrollment]:
    """Enroll students one at a time; each failure is reported, not raised."""

    async def _apply(student_id: str) -> ClassEnrollment:
        return await enroll_student(
            db, organization_id, EnrollmentCreate(class_id=class_id, student_id=student_id)
        )

    return await run_bulk(
        "bulk_enroll",
        student_ids,
        _apply,
        not_found_message=CLASS_NOT_FOUND,
        organization_id=organization_id,
        class_id=class_id,
    )


async def bulk_update_enrollments(
    db: AsyncSession,
    organization_id: str,
    updates: list[tuple[str, EnrollmentUpdate]],
) -> BulkResult[ClassEnrollment]:
    async def _apply(item: tuple[str, EnrollmentUpdate]) -> ClassEnrollment | None:
        enrollment_id, data = item
        return await update_enrollment(db, organization_id, enrollment_id, data)

    return await run_bulk(
        "bulk_update_enrollments",
        updates,
        _apply,
        not_found_message="Enrollment not found",
        organization_id=organization_id,
    )
