"""Show, role and casting service.

This module handles:
- Show creation/update with title, date-order and status lifecycle checks
- Optional replacement of a show's staff set on create/update
- Roles (deletion is blocked while castings are open)
- Casting with tenant and uniqueness checks; uncasting completes the casting
- Show statistics and bulk casting with per-item results

Status lifecycles (see services.rules):
    show:    planning -> rehearsing -> performing -> completed, or cancelled
             from any non-terminal state
    casting: assigned -> confirmed -> rehearsing -> performing -> completed,
             forward only
"""

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError, NotFoundError
from core.locks import tenant_lock
from models import Casting, CastingStatus, Role, Show
from repositories.base import Page
from repositories.show_repository import CastingRepository, RoleRepository, ShowRepository
from repositories.student_repository import StudentRepository
from schemas import (
    CastingCreate,
    CastingFilters,
    CastingUpdate,
    Pagination,
    RoleCreate,
    RoleFilters,
    RoleUpdate,
    ShowCreate,
    ShowFilters,
    ShowStats,
    ShowUpdate,
)
from services.rules import (
    CASTING_TRANSITIONS,
    SHOW_TRANSITIONS,
    BulkResult,
    changed_fields,
    check_order,
    check_transition,
    require_text,
    run_bulk,
    unique_guard,
)
from services.staff_service import replace_show_assignments

logger = get_logger(__name__)

SHOW_NOT_FOUND = "Show not found"
ROLE_NOT_FOUND = "Role not found"
ALREADY_CAST = "Student is already cast in this role"
DATE_ORDER_MESSAGE = "Start date cannot be after end date"


# =============================================================================
# Shows
# =============================================================================


async def create_show(db: AsyncSession, organization_id: str, data: ShowCreate) -> Show:
    """Create a show in planning, plus its staff set when one is supplied.

    Raises:
        ValidationError: Blank title or start date after end date.
        NotFoundError: If a supplied staff member is not in the organization.
    """
    values = data.model_dump(exclude={"staff_assignments"})
    values["title"] = require_text(data.title, "Show title is required")
    check_order(values["start_date"], values["end_date"], DATE_ORDER_MESSAGE)

    show = await ShowRepository(db).create(organization_id, **values)
    if data.staff_assignments is not None:
        await replace_show_assignments(db, organization_id, show.id, data.staff_assignments)

    logger.info("show.created", organization_id=organization_id, show_id=show.id)
    return show


async def update_show(
    db: AsyncSession, organization_id: str, show_id: str, data: ShowUpdate
) -> Show | None:
    """Apply the fields set on ``data``. Returns None if the show is unknown.

    Status only moves forward through ``rules.SHOW_TRANSITIONS``: a show can
    skip ahead but never return to an earlier stage, and completed or
    cancelled shows are final, so this is stricter than a free status
    field: a backward move raises ValidationError.

    Raises:
        ValidationError: Blank title, merged start date after end date, or a
            status change the lifecycle does not allow.
    """
    repo = ShowRepository(db)
    current = await repo.get_by_id(show_id, organization_id)
    if current is None:
        return None

    values = changed_fields(data, "status", "is_active")
    assignments = values.pop("staff_assignments", None)
    if "title" in values:
        values["title"] = require_text(values["title"], "Show title cannot be empty")
    check_order(
        values.get("start_date", current.start_date),
        values.get("end_date", current.end_date),
        DATE_ORDER_MESSAGE,
    )
    if "status" in values and not check_transition(
        "show", SHOW_TRANSITIONS, current.status, values["status"]
    ):
        del values["status"]

    show = await repo.update(show_id, organization_id, **values)
    if assignments is not None:
        await replace_show_assignments(db, organization_id, show_id, data.staff_assignments)
    return show


async def delete_show(db: AsyncSession, organization_id: str, show_id: str) -> bool:
    """Delete a show with no active roles.

    Raises:
        ConflictError: If the show still has active roles.
    """
    if await RoleRepository(db).count_active_by_show(organization_id, show_id) > 0:
        raise ConflictError("Cannot delete show with active roles", show_id=show_id)
    deleted = await ShowRepository(db).delete(show_id, organization_id)
    if deleted:
        logger.info("show.deleted", organization_id=organization_id, show_id=show_id)
    return deleted


async def get_show(db: AsyncSession, organization_id: str, show_id: str) -> Show | None:
    return await ShowRepository(db).get_by_id(show_id, organization_id)


async def list_shows(
    db: AsyncSession,
    organization_id: str,
    filters: ShowFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[Show]:
    return await ShowRepository(db).find_all(organization_id, filters, pagination)


async def get_active_shows(db: AsyncSession, organization_id: str) -> list[Show]:
    return await ShowRepository(db).get_active(organization_id)


async def get_shows_by_director(
    db: AsyncSession, organization_id: str, director_id: str
) -> list[Show]:
    return await ShowRepository(db).get_by_director(organization_id, director_id)


async def get_recent_shows(
    db: AsyncSession, organization_id: str, limit: int = 10
) -> list[Show]:
    return await ShowRepository(db).get_recent(organization_id, limit)


async def get_show_stats(db: AsyncSession, organization_id: str, show_id: str) -> ShowStats:
    """Role and casting counts for one show.

    "Active" castings are those assigned or confirmed; a role counts as cast
    while it has at least one casting that is not completed.

    Raises:
        NotFoundError: If the show is not in the organization.
    """
    if not await ShowRepository(db).exists(show_id, organization_id):
        raise NotFoundError(SHOW_NOT_FOUND, show_id=show_id)

    role_repo = RoleRepository(db)
    casting_repo = CastingRepository(db)
    counts = await casting_repo.count_by_status_for_show(organization_id, show_id)
    return ShowStats(
        total_roles=await role_repo.count_by_show(organization_id, show_id),
        cast_roles=await casting_repo.count_cast_roles_for_show(organization_id, show_id),
        total_castings=sum(counts.values()),
        active_castings=counts.get(CastingStatus.ASSIGNED, 0)
        + counts.get(CastingStatus.CONFIRMED, 0),
        rehearsing_castings=counts.get(CastingStatus.REHEARSING, 0),
        performing_castings=counts.get(CastingStatus.PERFORMING, 0),
        completed_castings=counts.get(CastingStatus.COMPLETED, 0),
    )


# =============================================================================
# Roles
# =============================================================================


async def create_role(db: AsyncSession, organization_id: str, data: RoleCreate) -> Role:
    """Create a role in a show.

    Raises:
        ValidationError: Blank name.
        NotFoundError: If the show is not in the organization.
    """
    name = require_text(data.name, "Role name is required")
    if not await ShowRepository(db).exists(data.show_id, organization_id):
        raise NotFoundError(SHOW_NOT_FOUND, show_id=data.show_id)

    values = data.model_dump()
    values["name"] = name
    role = await RoleRepository(db).create(organization_id, **values)
    logger.info("role.created", organization_id=organization_id, role_id=role.id)
    return role


async def update_role(
    db: AsyncSession, organization_id: str, role_id: str, data: RoleUpdate
) -> Role | None:
    repo = RoleRepository(db)
    if not await repo.exists(role_id, organization_id):
        return None
    values = changed_fields(data, "is_active")
    if "name" in values:
        values["name"] = require_text(values["name"], "Role name cannot be empty")
    return await repo.update(role_id, organization_id, **values)


async def delete_role(db: AsyncSession, organization_id: str, role_id: str) -> bool:
    """Delete a role with no open castings.

    Raises:
        ConflictError: If any casting of the role is not completed.
    """
    async with tenant_lock(db, "role", role_id):
        if await CastingRepository(db).count_open_by_role(organization_id, role_id) > 0:
            raise ConflictError("Cannot delete role with active castings", role_id=role_id)
        deleted = await RoleRepository(db).delete(role_id, organization_id)
    if deleted:
        logger.info("role.deleted", organization_id=organization_id, role_id=role_id)
    return deleted


async def get_role(db: AsyncSession, organization_id: str, role_id: str) -> Role | None:
    return await RoleRepository(db).get_by_id(role_id, organization_id)


async def list_roles(
    db: AsyncSession,
    organization_id: str,
    filters: RoleFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[Role]:
    return await RoleRepository(db).find_all(organization_id, filters, pagination)


async def get_roles_by_show(
    db: AsyncSession, organization_id: str, show_id: str
) -> list[Role]:
    return await RoleRepository(db).get_by_show(organization_id, show_id)


# =============================================================================
# Castings
# =============================================================================


async def cast_student(
    db: AsyncSession, organization_id: str, data: CastingCreate
) -> Casting:
    """Cast a student in a role.

    Raises:
        NotFoundError: If the role or student is not in the organization.
        ConflictError: If the student already holds an open casting in the role.
    """
    repo = CastingRepository(db)
    async with tenant_lock(db, "role", data.role_id):
        if not await RoleRepository(db).exists(data.role_id, organization_id):
            raise NotFoundError(ROLE_NOT_FOUND, role_id=data.role_id)
        if not await StudentRepository(db).exists(data.student_id, organization_id):
            raise NotFoundError("Student not found", student_id=data.student_id)

        if await repo.is_cast(organization_id, data.role_id, data.student_id):
            raise ConflictError(
                ALREADY_CAST, role_id=data.role_id, student_id=data.student_id
            )
        async with unique_guard(
            db, ALREADY_CAST, role_id=data.role_id, student_id=data.student_id
        ):
            casting = await repo.create(
                organization_id,
                role_id=data.role_id,
                student_id=data.student_id,
                notes=data.notes,
                status=CastingStatus.ASSIGNED,
            )

    logger.info(
        "casting.created",
        organization_id=organization_id,
        role_id=data.role_id,
        student_id=data.student_id,
    )
    return casting


async def uncast_student(
    db: AsyncSession, organization_id: str, casting_id: str
) -> Casting | None:
    """Complete a casting. Already-completed castings are returned as-is."""
    repo = CastingRepository(db)
    casting = await repo.get_by_id(casting_id, organization_id)
    if casting is None:
        return None
    if casting.status == CastingStatus.COMPLETED:
        return casting
    return await repo.update(casting_id, organization_id, status=CastingStatus.COMPLETED)


async def update_casting(
    db: AsyncSession, organization_id: str, casting_id: str, data: CastingUpdate
) -> Casting | None:
    """Update status and/or notes. Returns None if the casting is unknown.

    Raises:
        ValidationError: If the status would move backwards or leave completed.
    """
    repo = CastingRepository(db)
    casting = await repo.get_by_id(casting_id, organization_id)
    if casting is None:
        return None

    values = changed_fields(data, "status")
    if "status" in values and not check_transition(
        "casting", CASTING_TRANSITIONS, casting.status, values["status"]
    ):
        del values["status"]
    return await repo.update(casting_id, organization_id, **values)


async def get_casting(
    db: AsyncSession, organization_id: str, casting_id: str
) -> Casting | None:
    return await CastingRepository(db).get_by_id(casting_id, organization_id)


async def list_castings(
    db: AsyncSession,
    organization_id: str,
    filters: CastingFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[Casting]:
    return await CastingRepository(db).find_all(organization_id, filters, pagination)


async def get_castings_by_role(
    db: AsyncSession, organization_id: str, role_id: str
) -> list[Casting]:
    return await CastingRepository(db).get_by_role(organization_id, role_id)


async def get_castings_by_student(
    db: AsyncSession, organization_id: str, student_id: str
) -> list[Casting]:
    return await CastingRepository(db).get_by_student(organization_id, student_id)


async def get_castings_by_show(
    db: AsyncSession, organization_id: str, show_id: str
) -> list[Casting]:
    return await CastingRepository(db).get_by_show(organization_id, show_id)


async def bulk_cast_students(
    db: AsyncSession, organization_id: str, role_id: str, student_ids: list[str]
) -> BulkResult[Casting]:
    async def _apply(student_id: str) -> Casting:
        return await cast_student(
            db, organization_id, CastingCreate(role_id=role_id, student_id=student_id)
        )

    return await run_bulk(
        "bulk_cast",
        student_ids,
        _apply,
        not_found_message=ROLE_NOT_FOUND,
        organization_id=organization_id,
        role_id=role_id,
    )


async def bulk_update_castings(
    db: AsyncSession,
    organization_id: str,
    updates: list[tuple[str, CastingUpdate]],
) -> BulkResult[Casting]:
    async def _apply(item: tuple[str, CastingUpdate]) -> Casting | None:
        casting_id, data = item
        return await update_casting(db, organization_id, casting_id, data)

    return await run_bulk(
        "bulk_update_castings",
        updates,
        _apply,
        not_found_message="Casting not found",
        organization_id=organization_id,
    )
