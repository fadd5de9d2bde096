"""Show, role and casting repositories."""

from typing import Any

from sqlalchemy import Select, func, select

from models import Casting, CastingStatus, Role, Show, ShowStatus
from repositories.base import TenantRepository
from repositories.utils import log_slow_query


class ShowRepository(TenantRepository[Show]):
    """Repository for Show database operations."""

    model = Show
    search_columns = ("title", "description")

    async def get_by_director(self, organization_id: str, director_id: str) -> list[Show]:
        return await self._list(
            self._scoped(organization_id).where(Show.director_id == director_id)
        )

    async def get_active(self, organization_id: str) -> list[Show]:
        return await self._list(
            self._scoped(organization_id).where(Show.is_active.is_(True))
        )

    @log_slow_query("count_active_shows_by_status")
    async def count_active_by_status(self, organization_id: str) -> dict[ShowStatus, int]:
        result = await self.db.execute(
            select(Show.status, func.count())
            .where(Show.organization_id == organization_id, Show.is_active.is_(True))
            .group_by(Show.status)
        )
        return {ShowStatus(status): count for status, count in result.all()}


class RoleRepository(TenantRepository[Role]):
    """Repository for Role database operations."""

    model = Role
    search_columns = ("name", "description")

    async def get_by_show(self, organization_id: str, show_id: str) -> list[Role]:
        return await self._list(
            self._scoped(organization_id).where(Role.show_id == show_id)
        )

    async def count_active_by_show(self, organization_id: str, show_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                Role.organization_id == organization_id,
                Role.show_id == show_id,
                Role.is_active.is_(True),
            )
        )
        return count or 0

    async def count_by_show(self, organization_id: str, show_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                Role.organization_id == organization_id,
                Role.show_id == show_id,
            )
        )
        return count or 0


class CastingRepository(TenantRepository[Casting]):
    """Repository for Casting database operations.

    A casting is "open" until it reaches ``completed``; only open castings
    block re-casting the same student in the same role.
    """

    model = Casting

    def _apply_filter(self, stmt: Select[Any], name: str, value: Any) -> Select[Any]:
        if name == "show_id":
            return stmt.join(Role, Role.id == Casting.role_id).where(
                Role.show_id == value, Role.organization_id == Casting.organization_id
            )
        return super()._apply_filter(stmt, name, value)

    async def get_by_role(self, organization_id: str, role_id: str) -> list[Casting]:
        return await self._list(
            self._scoped(organization_id).where(Casting.role_id == role_id)
        )

    async def get_by_student(self, organization_id: str, student_id: str) -> list[Casting]:
        return await self._list(
            self._scoped(organization_id).where(Casting.student_id == student_id)
        )

    async def get_by_show(self, organization_id: str, show_id: str) -> list[Casting]:
        return await self._list(
            self._apply_filter(self._scoped(organization_id), "show_id", show_id)
        )

    async def get_open_casting(
        self, organization_id: str, role_id: str, student_id: str
    ) -> Casting | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(
                Casting.role_id == role_id,
                Casting.student_id == student_id,
                Casting.status != CastingStatus.COMPLETED,
            )
        )
        return result.scalar_one_or_none()

    async def is_cast(self, organization_id: str, role_id: str, student_id: str) -> bool:
        return await self.get_open_casting(organization_id, role_id, student_id) is not None

    async def count_open_by_role(self, organization_id: str, role_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                Casting.organization_id == organization_id,
                Casting.role_id == role_id,
                Casting.status != CastingStatus.COMPLETED,
            )
        )
        return count or 0

    async def count_by_role(self, organization_id: str, role_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                Casting.organization_id == organization_id,
                Casting.role_id == role_id,
            )
        )
        return count or 0

    @log_slow_query("count_castings_by_status_for_show")
    async def count_by_status_for_show(
        self, organization_id: str, show_id: str
    ) -> dict[CastingStatus, int]:
        result = await self.db.execute(
            select(Casting.status, func.count())
            .join(Role, Role.id == Casting.role_id)
            .where(
                Casting.organization_id == organization_id,
                Role.organization_id == organization_id,
                Role.show_id == show_id,
            )
            .group_by(Casting.status)
        )
        return {CastingStatus(status): count for status, count in result.all()}

    async def count_cast_roles_for_show(self, organization_id: str, show_id: str) -> int:
        """Roles of the show with at least one open casting."""
        count = await self.db.scalar(
            select(func.count(func.distinct(Casting.role_id)))
            .select_from(Casting)
            .join(Role, Role.id == Casting.role_id)
            .where(
                Casting.organization_id == organization_id,
                Role.organization_id == organization_id,
                Role.show_id == show_id,
                Casting.status != CastingStatus.COMPLETED,
            )
        )
        return count or 0
