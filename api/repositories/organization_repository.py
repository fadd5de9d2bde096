"""Organization and membership repositories.

Organizations are the tenant root, so OrganizationRepository is the one
repository that is not scoped by organization_id.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Organization, OrganizationMember, OrganizationRole
from repositories.base import Page, paginate, search_clause
from schemas import OrganizationFilters, Pagination

ORGANIZATION_SEARCH_COLUMNS = ("name", "slug", "description")


class OrganizationRepository:
    """Repository for Organization database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, organization_id: str) -> Organization | None:
        result = await self.db.execute(
            select(Organization).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Organization | None:
        result = await self.db.execute(
            select(Organization).where(Organization.slug == slug)
        )
        return result.scalar_one_or_none()

    async def find_all(
        self,
        filters: OrganizationFilters | None = None,
        pagination: Pagination | None = None,
    ) -> Page[Organization]:
        stmt = select(Organization)
        if filters is not None:
            if filters.is_active is not None:
                stmt = stmt.where(Organization.is_active == filters.is_active)
            if filters.search and filters.search.strip():
                stmt = stmt.where(
                    search_clause(Organization, ORGANIZATION_SEARCH_COLUMNS, filters.search)
                )
        stmt = stmt.order_by(Organization.created_at.desc(), Organization.id)
        return await paginate(self.db, stmt, pagination)

    async def get_for_user(self, user_id: str) -> list[Organization]:
        """Organizations where the user holds an active membership."""
        result = await self.db.execute(
            select(Organization)
            .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
            .where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.is_active.is_(True),
            )
            .order_by(Organization.name)
        )
        return list(result.scalars().all())

    async def create(self, **values: Any) -> Organization:
        organization = Organization(**values)
        self.db.add(organization)
        await self.db.flush()
        return organization

    async def update(self, organization_id: str, **values: Any) -> Organization | None:
        organization = await self.get_by_id(organization_id)
        if organization is None:
            return None
        for name, value in values.items():
            setattr(organization, name, value)
        organization.updated_at = datetime.now(UTC)
        await self.db.flush()
        return organization

    async def delete(self, organization_id: str) -> bool:
        result = await self.db.execute(
            delete(Organization).where(Organization.id == organization_id)
        )
        return result.rowcount > 0


class OrganizationMemberRepository:
    """Repository for OrganizationMember database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped(self, organization_id: str):
        return select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id
        )

    async def get_by_id(
        self, member_id: str, organization_id: str
    ) -> OrganizationMember | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(OrganizationMember.id == member_id)
        )
        return result.scalar_one_or_none()

    async def get_by_user(
        self, organization_id: str, user_id: str
    ) -> OrganizationMember | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(OrganizationMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_active_by_user(
        self, organization_id: str, user_id: str
    ) -> OrganizationMember | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_staff_member(
        self, organization_id: str, staff_member_id: str
    ) -> OrganizationMember | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(
                OrganizationMember.staff_member_id == staff_member_id
            )
        )
        return result.scalar_one_or_none()

    async def list_by_organization(
        self, organization_id: str, active_only: bool = False
    ) -> list[OrganizationMember]:
        stmt = self._scoped(organization_id)
        if active_only:
            stmt = stmt.where(OrganizationMember.is_active.is_(True))
        result = await self.db.execute(
            stmt.order_by(OrganizationMember.invited_at, OrganizationMember.id)
        )
        return list(result.scalars().all())

    async def count(self, organization_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                OrganizationMember.organization_id == organization_id
            )
        )
        return count or 0

    async def count_active_by_role(
        self, organization_id: str
    ) -> dict[OrganizationRole, int]:
        result = await self.db.execute(
            select(OrganizationMember.role, func.count())
            .where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.is_active.is_(True),
            )
            .group_by(OrganizationMember.role)
        )
        return {OrganizationRole(role): count for role, count in result.all()}

    async def count_active_admins(self, organization_id: str) -> int:
        counts = await self.count_active_by_role(organization_id)
        return counts.get(OrganizationRole.ADMIN, 0)

    async def create(self, organization_id: str, **values: Any) -> OrganizationMember:
        member = OrganizationMember(organization_id=organization_id, **values)
        self.db.add(member)
        await self.db.flush()
        return member

    async def update(
        self, member: OrganizationMember, **values: Any
    ) -> OrganizationMember:
        for name, value in values.items():
            setattr(member, name, value)
        await self.db.flush()
        return member

    async def delete(self, member_id: str, organization_id: str) -> bool:
        result = await self.db.execute(
            delete(OrganizationMember).where(
                OrganizationMember.id == member_id,
                OrganizationMember.organization_id == organization_id,
            )
        )
        return result.rowcount > 0
