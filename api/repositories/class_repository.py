"""Class and enrollment repositories."""

from sqlalchemy import func, select

from models import ClassEnrollment, EnrollmentStatus, SchoolClass
from repositories.base import TenantRepository
from repositories.utils import log_slow_query


class ClassRepository(TenantRepository[SchoolClass]):
    """Repository for SchoolClass database operations."""

    model = SchoolClass
    search_columns = ("name", "description")

    async def get_by_teacher(self, organization_id: str, teacher_id: str) -> list[SchoolClass]:
        return await self._list(
            self._scoped(organization_id).where(SchoolClass.teacher_id == teacher_id)
        )

    async def get_active(self, organization_id: str) -> list[SchoolClass]:
        return await self._list(
            self._scoped(organization_id).where(SchoolClass.is_active.is_(True))
        )

    async def count_active(self, organization_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                SchoolClass.organization_id == organization_id,
                SchoolClass.is_active.is_(True),
            )
        )
        return count or 0


class EnrollmentRepository(TenantRepository[ClassEnrollment]):
    """Repository for ClassEnrollment database operations.

    Only ``active`` rows occupy a seat; inactive, dropped and completed rows
    are history.
    """

    model = ClassEnrollment

    async def get_by_class(self, organization_id: str, class_id: str) -> list[ClassEnrollment]:
        return await self._list(
            self._scoped(organization_id).where(ClassEnrollment.class_id == class_id)
        )

    async def get_by_student(
        self, organization_id: str, student_id: str
    ) -> list[ClassEnrollment]:
        return await self._list(
            self._scoped(organization_id).where(ClassEnrollment.student_id == student_id)
        )

    async def get_active_enrollment(
        self, organization_id: str, class_id: str, student_id: str
    ) -> ClassEnrollment | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(
                ClassEnrollment.class_id == class_id,
                ClassEnrollment.student_id == student_id,
                ClassEnrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def is_enrolled(self, organization_id: str, class_id: str, student_id: str) -> bool:
        return (
            await self.get_active_enrollment(organization_id, class_id, student_id)
            is not None
        )

    @log_slow_query("count_active_enrollments")
    async def count_active_by_class(self, organization_id: str, class_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).where(
                ClassEnrollment.organization_id == organization_id,
                ClassEnrollment.class_id == class_id,
                ClassEnrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
        return count or 0

    @log_slow_query("count_enrollments_in_active_classes")
    async def count_active_in_active_classes(self, organization_id: str) -> int:
        """Active enrollments summed over the organization's active classes."""
        count = await self.db.scalar(
            select(func.count())
            .select_from(ClassEnrollment)
            .join(SchoolClass, SchoolClass.id == ClassEnrollment.class_id)
            .where(
                ClassEnrollment.organization_id == organization_id,
                SchoolClass.organization_id == organization_id,
                SchoolClass.is_active.is_(True),
                ClassEnrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
        return count or 0

    async def count_by_status(
        self, organization_id: str, class_id: str
    ) -> dict[EnrollmentStatus, int]:
        result = await self.db.execute(
            select(ClassEnrollment.status, func.count())
            .where(
                ClassEnrollment.organization_id == organization_id,
                ClassEnrollment.class_id == class_id,
            )
            .group_by(ClassEnrollment.status)
        )
        return {EnrollmentStatus(status): count for status, count in result.all()}
