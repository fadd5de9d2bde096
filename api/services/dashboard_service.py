"""Dashboard service.

This module builds an organization's dashboard by combining:
- Student statistics (active students by grade)
- Active class and enrollment counts
- Active show counts per production stage
- A recent-activity feed synthesized from the newest students, classes and
  shows (there is no stored audit log)

Errors propagate to the caller; the dashboard has no fallback of its own.
"""

from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger
from core.config import get_settings
from models import SchoolClass, Show, ShowStatus, Student
from repositories.class_repository import ClassRepository
from repositories.show_repository import ShowRepository
from repositories.student_repository import StudentRepository
from schemas import ActivityItem, ClassSummary, DashboardData, ShowSummary
from services.class_service import get_total_enrollments
from services.student_service import get_student_stats

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite drops tzinfo) as UTC so they compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def student_activity(student: Student) -> ActivityItem:
    return ActivityItem(
        id=f"student-{student.id}",
        type="student_added",
        title=f"Student {student.first_name} {student.last_name} was added",
        timestamp=_as_utc(student.created_at),
    )


def class_activity(school_class: SchoolClass) -> ActivityItem:
    return ActivityItem(
        id=f"class-{school_class.id}",
        type="class_created",
        title=f'Class "{school_class.name}" was created',
        timestamp=_as_utc(school_class.created_at),
    )


def show_activity(show: Show) -> ActivityItem:
    return ActivityItem(
        id=f"show-{show.id}",
        type="show_scheduled",
        title=f'Show "{show.title}" was scheduled',
        timestamp=_as_utc(show.created_at),
    )


def merge_recent_activity(items: list[ActivityItem], limit: int) -> list[ActivityItem]:
    """Newest first, ties broken by id so the order is deterministic."""
    ordered = sorted(items, key=lambda item: (item.timestamp, item.id), reverse=True)
    return ordered[:limit]


async def get_recent_activity(db: AsyncSession, organization_id: str) -> list[ActivityItem]:
    settings = get_settings()
    per_category = settings.dashboard_recent_per_category

    students = await StudentRepository(db).get_recent(organization_id, per_category)
    classes = await ClassRepository(db).get_recent(organization_id, per_category)
    shows = await ShowRepository(db).get_recent(organization_id, per_category)

    items = (
        [student_activity(s) for s in students]
        + [class_activity(c) for c in classes]
        + [show_activity(s) for s in shows]
    )
    return merge_recent_activity(items, settings.dashboard_recent_limit)


async def get_dashboard_data(db: AsyncSession, organization_id: str) -> DashboardData:
    """Build the dashboard for one organization.

    Queries run one after another: they share a single AsyncSession, which
    does not support concurrent use.
    """
    student_stats = await get_student_stats(db, organization_id)

    active_classes = await ClassRepository(db).count_active(organization_id)
    class_stats = ClassSummary(
        total_active=active_classes,
        total_enrollments=await get_total_enrollments(db, organization_id),
    )

    shows_by_status = await ShowRepository(db).count_active_by_status(organization_id)
    active_shows = sum(shows_by_status.values())
    show_stats = ShowSummary(
        total_active=active_shows,
        planning_shows=shows_by_status.get(ShowStatus.PLANNING, 0),
        rehearsing_shows=shows_by_status.get(ShowStatus.REHEARSING, 0),
        performing_shows=shows_by_status.get(ShowStatus.PERFORMING, 0),
    )

    recent_activity = await get_recent_activity(db, organization_id)

    logger.debug(
        "dashboard.built",
        organization_id=organization_id,
        activity_items=len(recent_activity),
    )
    return DashboardData(
        total_students=student_stats.total_active,
        active_classes=active_classes,
        upcoming_shows=active_shows,
        student_stats=student_stats,
        class_stats=class_stats,
        show_stats=show_stats,
        recent_activity=recent_activity,
    )
