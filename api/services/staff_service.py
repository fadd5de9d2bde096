"""Staff member service.

This module handles:
- Staff member creation/update with name and per-organization email checks
- Full replacement of a show's staff assignments
"""

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError, NotFoundError
from models import ShowStaffAssignment, StaffMember
from repositories.base import Page
from repositories.show_repository import ShowRepository
from repositories.staff_repository import (
    ShowStaffAssignmentRepository,
    StaffMemberRepository,
)
from schemas import (
    Pagination,
    StaffAssignmentInput,
    StaffMemberCreate,
    StaffMemberFilters,
    StaffMemberUpdate,
)
from services.rules import changed_fields, normalize_email, require_text

logger = get_logger(__name__)

EMAIL_TAKEN_MESSAGE = "A staff member with this email already exists"


async def _check_email_available(
    repo: StaffMemberRepository,
    organization_id: str,
    email: str | None,
    exclude_id: str | None = None,
) -> None:
    if email is None:
        return
    if await repo.get_by_email(organization_id, email, exclude_id=exclude_id):
        raise ConflictError(EMAIL_TAKEN_MESSAGE, organization_id=organization_id)


async def create_staff_member(
    db: AsyncSession, organization_id: str, data: StaffMemberCreate
) -> StaffMember:
    """Create a staff member.

    Raises:
        ValidationError: If first or last name is blank.
        ConflictError: If another staff member of the organization has the email.
    """
    values = data.model_dump()
    values["first_name"] = require_text(data.first_name, "First name is required")
    values["last_name"] = require_text(data.last_name, "Last name is required")
    values["email"] = normalize_email(data.email)

    repo = StaffMemberRepository(db)
    await _check_email_available(repo, organization_id, values["email"])
    staff_member = await repo.create(organization_id, **values)

    logger.info(
        "staff_member.created",
        organization_id=organization_id,
        staff_member_id=staff_member.id,
    )
    return staff_member


async def update_staff_member(
    db: AsyncSession, organization_id: str, staff_member_id: str, data: StaffMemberUpdate
) -> StaffMember | None:
    repo = StaffMemberRepository(db)
    if not await repo.exists(staff_member_id, organization_id):
        return None

    values = changed_fields(data, "primary_role", "is_active")
    if "first_name" in values:
        values["first_name"] = require_text(values["first_name"], "First name cannot be empty")
    if "last_name" in values:
        values["last_name"] = require_text(values["last_name"], "Last name cannot be empty")
    if "email" in values:
        values["email"] = normalize_email(values["email"])
        await _check_email_available(
            repo, organization_id, values["email"], exclude_id=staff_member_id
        )

    return await repo.update(staff_member_id, organization_id, **values)


async def delete_staff_member(
    db: AsyncSession, organization_id: str, staff_member_id: str
) -> bool:
    """Delete a staff member; any member link is cleared by the foreign key."""
    return await StaffMemberRepository(db).delete(staff_member_id, organization_id)


async def get_staff_member(
    db: AsyncSession, organization_id: str, staff_member_id: str
) -> StaffMember | None:
    return await StaffMemberRepository(db).get_by_id(staff_member_id, organization_id)


async def list_staff_members(
    db: AsyncSession,
    organization_id: str,
    filters: StaffMemberFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[StaffMember]:
    return await StaffMemberRepository(db).find_all(organization_id, filters, pagination)


async def get_active_staff(db: AsyncSession, organization_id: str) -> list[StaffMember]:
    return await StaffMemberRepository(db).get_active(organization_id)


async def get_show_assignments(
    db: AsyncSession, organization_id: str, show_id: str
) -> list[ShowStaffAssignment]:
    return await ShowStaffAssignmentRepository(db).get_by_show(organization_id, show_id)


async def replace_show_assignments(
    db: AsyncSession,
    organization_id: str,
    show_id: str,
    assignments: list[StaffAssignmentInput],
) -> list[ShowStaffAssignment]:
    """Replace a show's staff set with ``assignments`` (empty list clears it).

    The delete and the inserts share one savepoint, so a failure leaves the
    previous set in place.

    Raises:
        NotFoundError: If the show or any staff member is not in the organization.
    """
    if not await ShowRepository(db).exists(show_id, organization_id):
        raise NotFoundError("Show not found", show_id=show_id)

    wanted = {assignment.staff_member_id for assignment in assignments}
    found = {
        member.id: member
        for member in await StaffMemberRepository(db).get_many(organization_id, list(wanted))
    }
    missing = wanted - found.keys()
    if missing:
        raise NotFoundError("Staff member not found", staff_member_ids=sorted(missing))

    repo = ShowStaffAssignmentRepository(db)
    created: list[ShowStaffAssignment] = []
    async with db.begin_nested():
        await repo.delete_by_show(organization_id, show_id)
        for assignment in assignments:
            created.append(
                await repo.create(
                    organization_id,
                    show_id=show_id,
                    staff_member=found[assignment.staff_member_id],
                    role=assignment.role,
                    notes=assignment.notes,
                )
            )

    logger.info(
        "show_staff.replaced",
        organization_id=organization_id,
        show_id=show_id,
        assignments=len(created),
    )
    return created


async def remove_show_assignments(
    db: AsyncSession, organization_id: str, show_id: str
) -> int:
    return await ShowStaffAssignmentRepository(db).delete_by_show(organization_id, show_id)
