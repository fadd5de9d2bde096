"""Organization and membership service.

This module handles:
- Organization creation (slug format + global uniqueness, creator becomes admin)
- Organization update/delete
- Membership add/role change/removal with the last-admin quorum
- Linking a membership to a staff member record (admin only, 1:1)
- Ownership transfer between two members
- Membership statistics

The quorum and transfer run under tenant_lock("organization", id); staff
linking runs under tenant_lock("staff_link", staff_member_id) and is backed
by the partial unique index on organization_members.staff_member_id.
"""

import re

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.locks import tenant_lock
from models import Organization, OrganizationMember, OrganizationRole, utcnow
from repositories.base import Page
from repositories.organization_repository import (
    OrganizationMemberRepository,
    OrganizationRepository,
)
from repositories.staff_repository import StaffMemberRepository
from schemas import (
    OrganizationCreate,
    OrganizationFilters,
    OrganizationStats,
    OrganizationUpdate,
    Pagination,
)
from services.rules import (
    changed_fields,
    check_email_format,
    normalize_email,
    require_text,
    unique_guard,
)

logger = get_logger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

SLUG_TAKEN = "An organization with this slug already exists"
INVALID_EMAIL = "Invalid contact email format"
LAST_ADMIN = "Cannot remove the last admin from the organization"
MEMBER_NOT_FOUND = "Organization member not found"
ADMIN_ONLY_LINKING = "Only organization admins can link or unlink staff members"


def _parse_role(role: OrganizationRole | str) -> OrganizationRole:
    try:
        return OrganizationRole(role)
    except ValueError as e:
        raise ValidationError("Invalid role specified", role=str(role)) from e


def _require_admin(acting_role: OrganizationRole | str) -> None:
    if acting_role != OrganizationRole.ADMIN:
        raise ForbiddenError(ADMIN_ONLY_LINKING, acting_role=str(acting_role))


# =============================================================================
# Organizations
# =============================================================================


async def create_organization(
    db: AsyncSession, data: OrganizationCreate, creator_user_id: str
) -> Organization:
    """Create an organization and make the creator its first admin.

    Raises:
        ValidationError: Blank name or slug, malformed slug, or malformed
            contact email.
        ConflictError: If the slug is already taken.
    """
    name = require_text(data.name, "Organization name is required")
    slug = require_text(data.slug, "Organization slug is required")
    if not SLUG_PATTERN.match(slug):
        raise ValidationError(
            "Slug must contain only lowercase letters, numbers, and hyphens", slug=slug
        )
    contact_email = normalize_email(data.contact_email)
    check_email_format(contact_email, INVALID_EMAIL)

    repo = OrganizationRepository(db)
    async with tenant_lock(db, "slug", slug):
        if await repo.get_by_slug(slug) is not None:
            raise ConflictError(SLUG_TAKEN, slug=slug)
        async with unique_guard(db, SLUG_TAKEN, slug=slug):
            organization = await repo.create(
                name=name,
                slug=slug,
                description=data.description,
                contact_email=contact_email,
                website_url=data.website_url,
            )
            await OrganizationMemberRepository(db).create(
                organization.id,
                user_id=creator_user_id,
                role=OrganizationRole.ADMIN,
                is_active=True,
                joined_at=utcnow(),
            )

    logger.info(
        "organization.created",
        organization_id=organization.id,
        slug=slug,
        creator_user_id=creator_user_id,
    )
    return organization


async def update_organization(
    db: AsyncSession, organization_id: str, data: OrganizationUpdate
) -> Organization | None:
    """Apply the fields set on ``data``. The slug is not updatable.

    Raises:
        ValidationError: Blank name or malformed contact email.
    """
    values = changed_fields(data, "is_active")
    if "name" in values:
        values["name"] = require_text(values["name"], "Organization name cannot be empty")
    if "contact_email" in values:
        values["contact_email"] = normalize_email(values["contact_email"])
        check_email_format(values["contact_email"], INVALID_EMAIL)
    return await OrganizationRepository(db).update(organization_id, **values)


async def delete_organization(db: AsyncSession, organization_id: str) -> bool:
    """Delete an organization that has no members left.

    Raises:
        ConflictError: While any membership row exists.
    """
    if await OrganizationMemberRepository(db).count(organization_id) > 0:
        raise ConflictError(
            "Cannot delete organization with active members",
            organization_id=organization_id,
        )
    deleted = await OrganizationRepository(db).delete(organization_id)
    if deleted:
        logger.info("organization.deleted", organization_id=organization_id)
    return deleted


async def get_organization(db: AsyncSession, organization_id: str) -> Organization | None:
    return await OrganizationRepository(db).get_by_id(organization_id)


async def get_organization_by_slug(db: AsyncSession, slug: str) -> Organization | None:
    return await OrganizationRepository(db).get_by_slug(slug)


async def list_organizations(
    db: AsyncSession,
    filters: OrganizationFilters | None = None,
    pagination: Pagination | None = None,
) -> Page[Organization]:
    return await OrganizationRepository(db).find_all(filters, pagination)


async def get_user_organizations(db: AsyncSession, user_id: str) -> list[Organization]:
    """Organizations where the user is an active member."""
    return await OrganizationRepository(db).get_for_user(user_id)


async def get_organization_stats(
    db: AsyncSession, organization_id: str
) -> OrganizationStats:
    repo = OrganizationMemberRepository(db)
    by_role = await repo.count_active_by_role(organization_id)
    return OrganizationStats(
        total_members=await repo.count(organization_id),
        active_members=sum(by_role.values()),
        admins=by_role.get(OrganizationRole.ADMIN, 0),
        teachers=by_role.get(OrganizationRole.TEACHER, 0),
        staff=by_role.get(OrganizationRole.STAFF, 0),
    )


# =============================================================================
# Membership
# =============================================================================


async def add_member(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    role: OrganizationRole | str,
    invited_by: str | None = None,
) -> OrganizationMember:
    """Add a user to the organization, or re-activate a deactivated membership.

    Raises:
        ValidationError: If ``role`` is not a known organization role.
        ConflictError: If the user is already an active member.
    """
    role = _parse_role(role)
    repo = OrganizationMemberRepository(db)
    existing = await repo.get_by_user(organization_id, user_id)
    if existing is not None and existing.is_active:
        raise ConflictError("User is already a member of this organization", user_id=user_id)

    async with unique_guard(
        db, "User is already a member of this organization", user_id=user_id
    ):
        if existing is not None:
            member = await repo.update(
                existing,
                role=role,
                is_active=True,
                invited_by=invited_by,
                invited_at=utcnow(),
                joined_at=utcnow(),
            )
        else:
            member = await repo.create(
                organization_id,
                user_id=user_id,
                role=role,
                invited_by=invited_by,
                joined_at=utcnow(),
            )

    logger.info(
        "organization.member_added",
        organization_id=organization_id,
        user_id=user_id,
        role=role.value,
    )
    return member


async def _check_admin_quorum(
    repo: OrganizationMemberRepository,
    organization_id: str,
    member: OrganizationMember,
) -> None:
    """Caller must hold tenant_lock("organization", organization_id)."""
    if member.role != OrganizationRole.ADMIN or not member.is_active:
        return
    if await repo.count_active_admins(organization_id) <= 1:
        logger.warning(
            "organization.last_admin_protected",
            organization_id=organization_id,
            user_id=member.user_id,
        )
        raise ConflictError(LAST_ADMIN, user_id=member.user_id)


async def update_member_role(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    role: OrganizationRole | str,
) -> OrganizationMember | None:
    """Change a member's role. Returns None if the user is not a member.

    Raises:
        ValidationError: If ``role`` is not a known organization role.
        ConflictError: If this would demote the last active admin.
    """
    role = _parse_role(role)
    repo = OrganizationMemberRepository(db)
    async with tenant_lock(db, "organization", organization_id):
        member = await repo.get_by_user(organization_id, user_id)
        if member is None:
            return None
        if role != OrganizationRole.ADMIN:
            await _check_admin_quorum(repo, organization_id, member)
        return await repo.update(member, role=role)


async def remove_member(db: AsyncSession, organization_id: str, user_id: str) -> bool:
    """Remove a membership row.

    Raises:
        ConflictError: If the member is the last active admin.
    """
    repo = OrganizationMemberRepository(db)
    async with tenant_lock(db, "organization", organization_id):
        member = await repo.get_by_user(organization_id, user_id)
        if member is None:
            return False
        await _check_admin_quorum(repo, organization_id, member)
        deleted = await repo.delete(member.id, organization_id)

    logger.info("organization.member_removed", organization_id=organization_id, user_id=user_id)
    return deleted


async def get_organization_members(
    db: AsyncSession, organization_id: str
) -> list[OrganizationMember]:
    return await OrganizationMemberRepository(db).list_by_organization(organization_id)


async def get_user_role(
    db: AsyncSession, organization_id: str, user_id: str
) -> OrganizationRole | None:
    """Role of an active member, or None."""
    member = await OrganizationMemberRepository(db).get_active_by_user(
        organization_id, user_id
    )
    return member.role if member else None


async def is_user_member(db: AsyncSession, organization_id: str, user_id: str) -> bool:
    return await get_user_role(db, organization_id, user_id) is not None


# =============================================================================
# Staff linking
# =============================================================================


async def link_staff_member_to_organization_member(
    db: AsyncSession,
    organization_id: str,
    member_id: str,
    staff_member_id: str,
    acting_role: OrganizationRole | str,
) -> OrganizationMember:
    """Link a membership to a staff member record.

    A member links to at most one staff member and a staff member is linked
    by at most one member. Relinking the same pair is a no-op write.

    Raises:
        ForbiddenError: If the acting role is not admin.
        NotFoundError: If the member or staff member is not in the organization.
        ValidationError: If the staff member is inactive or belongs to a
            different organization.
        ConflictError: If another member already links this staff member.
    """
    _require_admin(acting_role)

    member_repo = OrganizationMemberRepository(db)
    already_linked = "Staff member is already linked to another organization member"
    async with tenant_lock(db, "staff_link", staff_member_id):
        member = await member_repo.get_by_id(member_id, organization_id)
        if member is None:
            raise NotFoundError(MEMBER_NOT_FOUND, member_id=member_id)

        staff_member = await StaffMemberRepository(db).get_by_id(
            staff_member_id, organization_id
        )
        if staff_member is None:
            raise NotFoundError(
                "Staff member not found in this organization",
                staff_member_id=staff_member_id,
            )
        if not staff_member.is_active:
            raise ValidationError(
                "Staff member is not active", staff_member_id=staff_member_id
            )
        if staff_member.organization_id != organization_id:
            raise ValidationError(
                "Staff member belongs to a different organization",
                staff_member_id=staff_member_id,
            )

        linked = await member_repo.get_by_staff_member(organization_id, staff_member_id)
        if linked is not None and linked.id != member_id:
            raise ConflictError(
                already_linked,
                staff_member_id=staff_member_id,
                linked_member_id=linked.id,
            )
        async with unique_guard(db, already_linked, staff_member_id=staff_member_id):
            member = await member_repo.update(member, staff_member_id=staff_member_id)

    logger.info(
        "organization.staff_linked",
        organization_id=organization_id,
        member_id=member_id,
        staff_member_id=staff_member_id,
    )
    return member


async def unlink_staff_member_from_organization_member(
    db: AsyncSession,
    organization_id: str,
    member_id: str,
    acting_role: OrganizationRole | str,
) -> OrganizationMember:
    """Clear a membership's staff link.

    Raises:
        ForbiddenError: If the acting role is not admin.
        NotFoundError: If the member is not in the organization.
    """
    _require_admin(acting_role)

    repo = OrganizationMemberRepository(db)
    member = await repo.get_by_id(member_id, organization_id)
    if member is None:
        raise NotFoundError(MEMBER_NOT_FOUND, member_id=member_id)
    member = await repo.update(member, staff_member_id=None)

    logger.info(
        "organization.staff_unlinked", organization_id=organization_id, member_id=member_id
    )
    return member


# =============================================================================
# Ownership
# =============================================================================


async def transfer_ownership(
    db: AsyncSession, organization_id: str, current_owner_id: str, new_owner_id: str
) -> bool:
    """Promote ``new_owner_id`` to admin and demote the current owner to staff.

    Both role writes share one savepoint: either both land or neither does.

    Raises:
        ValidationError: If both ids name the same user.
        ForbiddenError: If the current owner is not an active admin.
        NotFoundError: If the new owner is not an active member.
    """
    if current_owner_id == new_owner_id:
        raise ValidationError("New owner must be a different member")

    repo = OrganizationMemberRepository(db)
    async with tenant_lock(db, "organization", organization_id):
        current = await repo.get_active_by_user(organization_id, current_owner_id)
        if current is None or current.role != OrganizationRole.ADMIN:
            raise ForbiddenError(
                "Only admins can transfer ownership", user_id=current_owner_id
            )
        new_owner = await repo.get_active_by_user(organization_id, new_owner_id)
        if new_owner is None:
            raise NotFoundError(
                "New owner must be a member of the organization", user_id=new_owner_id
            )

        async with db.begin_nested():
            await repo.update(new_owner, role=OrganizationRole.ADMIN)
            await repo.update(current, role=OrganizationRole.STAFF)

    logger.info(
        "organization.ownership_transferred",
        organization_id=organization_id,
        from_user_id=current_owner_id,
        to_user_id=new_owner_id,
    )
    return True
