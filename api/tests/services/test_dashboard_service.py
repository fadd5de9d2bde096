"""Tests for dashboard_service.

Tests cover:
- merge_recent_activity ordering and limit
- activity item builders (naive timestamps treated as UTC)
- get_dashboard_data counts, tenant isolation and feed contents
"""

from datetime import UTC, datetime, timedelta

import pytest
from factories import (
    ClassEnrollmentFactory,
    SchoolClassFactory,
    ShowFactory,
    StudentFactory,
    create_async,
)
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import clear_settings_cache
from models import EnrollmentStatus, Organization, ShowStatus
from schemas import ActivityItem
from services.dashboard_service import (
    get_dashboard_data,
    get_recent_activity,
    merge_recent_activity,
    student_activity,
)

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _item(item_id: str, minutes: int) -> ActivityItem:
    return ActivityItem(
        id=item_id,
        type="student_added",
        title=item_id,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.mark.unit
class TestMergeRecentActivity:
    def test_newest_first(self):
        items = [_item("a", 1), _item("b", 3), _item("c", 2)]

        assert [i.id for i in merge_recent_activity(items, 10)] == ["b", "c", "a"]

    def test_truncates_to_limit(self):
        items = [_item(str(n), n) for n in range(30)]

        merged = merge_recent_activity(items, 20)

        assert len(merged) == 20
        assert merged[0].id == "29"

    def test_ties_broken_by_id_descending(self):
        items = [_item("show-1", 0), _item("class-9", 0), _item("student-5", 0)]

        assert [i.id for i in merge_recent_activity(items, 10)] == [
            "student-5",
            "show-1",
            "class-9",
        ]

    def test_naive_timestamp_treated_as_utc(self):
        student = StudentFactory.build(
            organization_id="org", created_at=datetime(2026, 1, 1, 9, 30)
        )

        item = student_activity(student)

        assert item.timestamp == datetime(2026, 1, 1, 9, 30, tzinfo=UTC)
        assert item.id == f"student-{student.id}"
        assert item.title == f"Student {student.first_name} {student.last_name} was added"


@pytest.mark.integration
class TestGetDashboardData:
    async def test_empty_organization(
        self, db_session: AsyncSession, organization: Organization
    ):
        data = await get_dashboard_data(db_session, organization.id)

        assert data.total_students == 0
        assert data.active_classes == 0
        assert data.upcoming_shows == 0
        assert data.student_stats.by_grade == {}
        assert data.recent_activity == []

    async def test_counts(self, db_session: AsyncSession, organization: Organization):
        students = [
            await create_async(StudentFactory, db_session, organization_id=organization.id)
            for _ in range(3)
        ]
        await create_async(
            StudentFactory, db_session, organization_id=organization.id, is_active=False
        )
        active_class = await create_async(
            SchoolClassFactory, db_session, organization_id=organization.id
        )
        closed_class = await create_async(
            SchoolClassFactory, db_session, organization_id=organization.id, is_active=False
        )
        for school_class, student in (
            (active_class, students[0]),
            (active_class, students[1]),
            (closed_class, students[2]),
        ):
            await create_async(
                ClassEnrollmentFactory,
                db_session,
                organization_id=organization.id,
                class_id=school_class.id,
                student_id=student.id,
                status=EnrollmentStatus.ACTIVE,
            )
        for status in (ShowStatus.PLANNING, ShowStatus.REHEARSING, ShowStatus.PERFORMING):
            await create_async(
                ShowFactory, db_session, organization_id=organization.id, status=status
            )
        await create_async(
            ShowFactory,
            db_session,
            organization_id=organization.id,
            status=ShowStatus.PLANNING,
            is_active=False,
        )

        data = await get_dashboard_data(db_session, organization.id)

        assert data.total_students == 3
        assert data.student_stats.by_grade == {"5": 3}
        assert data.active_classes == 1
        assert data.class_stats.total_active == 1
        assert data.class_stats.total_enrollments == 2
        assert data.upcoming_shows == 3
        assert data.show_stats.planning_shows == 1
        assert data.show_stats.rehearsing_shows == 1
        assert data.show_stats.performing_shows == 1

    async def test_other_tenant_data_is_invisible(
        self,
        db_session: AsyncSession,
        organization: Organization,
        other_organization: Organization,
    ):
        await create_async(StudentFactory, db_session, organization_id=other_organization.id)
        await create_async(SchoolClassFactory, db_session, organization_id=other_organization.id)
        await create_async(ShowFactory, db_session, organization_id=other_organization.id)

        data = await get_dashboard_data(db_session, organization.id)

        assert data.total_students == 0
        assert data.active_classes == 0
        assert data.upcoming_shows == 0
        assert data.recent_activity == []


@pytest.mark.integration
class TestRecentActivity:
    async def test_feed_mixes_categories_newest_first(
        self, db_session: AsyncSession, organization: Organization
    ):
        await create_async(
            StudentFactory,
            db_session,
            organization_id=organization.id,
            first_name="Ada",
            last_name="Negri",
            created_at=BASE_TIME,
        )
        await create_async(
            ShowFactory,
            db_session,
            organization_id=organization.id,
            title="Arlecchino",
            created_at=BASE_TIME + timedelta(hours=2),
        )
        await create_async(
            SchoolClassFactory,
            db_session,
            organization_id=organization.id,
            name="Mime",
            created_at=BASE_TIME + timedelta(hours=1),
        )

        feed = await get_recent_activity(db_session, organization.id)

        assert [(i.type, i.title) for i in feed] == [
            ("show_scheduled", 'Show "Arlecchino" was scheduled'),
            ("class_created", 'Class "Mime" was created'),
            ("student_added", "Student Ada Negri was added"),
        ]
        assert all(i.timestamp.tzinfo is not None for i in feed)

    async def test_feed_respects_configured_limits(
        self,
        db_session: AsyncSession,
        organization: Organization,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("DASHBOARD_RECENT_PER_CATEGORY", "2")
        monkeypatch.setenv("DASHBOARD_RECENT_LIMIT", "3")
        clear_settings_cache()
        for n in range(4):
            await create_async(
                StudentFactory,
                db_session,
                organization_id=organization.id,
                created_at=BASE_TIME + timedelta(minutes=n),
            )
            await create_async(
                ShowFactory,
                db_session,
                organization_id=organization.id,
                created_at=BASE_TIME + timedelta(minutes=n, seconds=30),
            )

        feed = await get_recent_activity(db_session, organization.id)

        assert len(feed) == 3
        assert [i.type for i in feed] == ["show_scheduled", "student_added", "show_scheduled"]
