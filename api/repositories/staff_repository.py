"""Staff member and show staff assignment repositories."""

from sqlalchemy import delete, func

from models import ShowStaffAssignment, StaffMember
from repositories.base import TenantRepository


class StaffMemberRepository(TenantRepository[StaffMember]):
    """Repository for StaffMember database operations."""

    model = StaffMember
    search_columns = ("first_name", "last_name", "email")

    async def get_by_email(
        self, organization_id: str, email: str, exclude_id: str | None = None
    ) -> StaffMember | None:
        """Find a staff member by email, case-insensitively, within one organization."""
        stmt = self._scoped(organization_id).where(
            func.lower(StaffMember.email) == email.strip().lower()
        )
        if exclude_id is not None:
            stmt = stmt.where(StaffMember.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_active(self, organization_id: str) -> list[StaffMember]:
        return await self._list(
            self._scoped(organization_id).where(StaffMember.is_active.is_(True))
        )

    async def get_many(self, organization_id: str, ids: list[str]) -> list[StaffMember]:
        if not ids:
            return []
        result = await self.db.execute(
            self._scoped(organization_id).where(StaffMember.id.in_(ids))
        )
        return list(result.scalars().all())


class ShowStaffAssignmentRepository(TenantRepository[ShowStaffAssignment]):
    """Repository for ShowStaffAssignment database operations."""

    model = ShowStaffAssignment

    async def get_by_show(
        self, organization_id: str, show_id: str
    ) -> list[ShowStaffAssignment]:
        result = await self.db.execute(
            self._scoped(organization_id)
            .where(ShowStaffAssignment.show_id == show_id)
            .order_by(ShowStaffAssignment.created_at, ShowStaffAssignment.id)
        )
        return list(result.scalars().all())

    async def delete_by_show(self, organization_id: str, show_id: str) -> int:
        result = await self.db.execute(
            delete(ShowStaffAssignment).where(
                ShowStaffAssignment.organization_id == organization_id,
                ShowStaffAssignment.show_id == show_id,
            )
        )
        return result.rowcount
