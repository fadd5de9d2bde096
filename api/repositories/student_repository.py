"""Student repository for database operations."""

from sqlalchemy import func, select

from models import Student
from repositories.base import TenantRepository
from repositories.utils import log_slow_query


class StudentRepository(TenantRepository[Student]):
    """Repository for Student database operations."""

    model = Student
    search_columns = ("first_name", "last_name", "email")

    async def get_by_email(
        self, organization_id: str, email: str, exclude_id: str | None = None
    ) -> Student | None:
        """Find a student by email, case-insensitively, within one organization."""
        stmt = self._scoped(organization_id).where(
            func.lower(Student.email) == email.strip().lower()
        )
        if exclude_id is not None:
            stmt = stmt.where(Student.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_active(self, organization_id: str) -> list[Student]:
        return await self._list(
            self._scoped(organization_id).where(Student.is_active.is_(True))
        )

    @log_slow_query("count_active_students_by_grade")
    async def count_active_by_grade(self, organization_id: str) -> dict[str | None, int]:
        """Active students grouped by grade_level (None for unset)."""
        result = await self.db.execute(
            select(Student.grade_level, func.count())
            .where(
                Student.organization_id == organization_id,
                Student.is_active.is_(True),
            )
            .group_by(Student.grade_level)
        )
        return {grade: count for grade, count in result.all()}
