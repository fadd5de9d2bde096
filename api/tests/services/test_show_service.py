"""Tests for services.show_service.

Covers show validation and status lifecycle, staff set replacement on
create/update, role deletion rules, casting uniqueness and lifecycle,
show statistics and bulk casting.
"""

from datetime import date

import pytest
from factories import (
    CastingFactory,
    RoleFactory,
    ShowFactory,
    StaffMemberFactory,
    StudentFactory,
    create_async,
    create_batch_async,
)
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, ErrorKind, NotFoundError, ValidationError
from models import CastingStatus, Organization, ShowStatus, StaffRole
from schemas import (
    CastingCreate,
    CastingFilters,
    CastingUpdate,
    RoleCreate,
    RoleUpdate,
    ShowCreate,
    ShowFilters,
    ShowUpdate,
    StaffAssignmentInput,
)
from services import show_service, staff_service


async def _show(db: AsyncSession, organization: Organization, **kwargs):
    return await create_async(ShowFactory, db, organization_id=organization.id, **kwargs)


async def _role(db: AsyncSession, organization: Organization, show_id: str, **kwargs):
    return await create_async(
        RoleFactory, db, organization_id=organization.id, show_id=show_id, **kwargs
    )


async def _student(db: AsyncSession, organization: Organization):
    return await create_async(StudentFactory, db, organization_id=organization.id)


@pytest.mark.integration
class TestShows:
    async def test_create_show_starts_in_planning(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await show_service.create_show(
            db_session, organization.id, ShowCreate(title=" La Tempesta ", venue="Sala Grande")
        )

        assert show.title == "La Tempesta"
        assert show.status == ShowStatus.PLANNING
        assert show.is_active is True

    async def test_create_show_rejects_blank_title(
        self, db_session: AsyncSession, organization: Organization
    ):
        with pytest.raises(ValidationError, match="Show title is required"):
            await show_service.create_show(db_session, organization.id, ShowCreate(title=""))

    async def test_create_show_rejects_reversed_dates(
        self, db_session: AsyncSession, organization: Organization
    ):
        with pytest.raises(ValidationError, match="Start date cannot be after end date"):
            await show_service.create_show(
                db_session,
                organization.id,
                ShowCreate(
                    title="Macbeth",
                    start_date=date(2026, 12, 10),
                    end_date=date(2026, 12, 1),
                ),
            )

    async def test_create_show_with_staff(
        self, db_session: AsyncSession, organization: Organization
    ):
        director = await create_async(
            StaffMemberFactory, db_session, organization_id=organization.id
        )

        show = await show_service.create_show(
            db_session,
            organization.id,
            ShowCreate(
                title="Pinocchio",
                staff_assignments=[
                    StaffAssignmentInput(staff_member_id=director.id, role=StaffRole.REGISTA)
                ],
            ),
        )

        assignments = await staff_service.get_show_assignments(
            db_session, organization.id, show.id
        )
        assert [(a.staff_member_id, a.role) for a in assignments] == [
            (director.id, StaffRole.REGISTA)
        ]

    @pytest.mark.parametrize(
        "start,target",
        [
            (ShowStatus.PLANNING, ShowStatus.REHEARSING),
            (ShowStatus.PLANNING, ShowStatus.CANCELLED),
            (ShowStatus.REHEARSING, ShowStatus.PERFORMING),
            (ShowStatus.PERFORMING, ShowStatus.COMPLETED),
            (ShowStatus.PLANNING, ShowStatus.COMPLETED),
        ],
    )
    async def test_allowed_status_changes(
        self,
        db_session: AsyncSession,
        organization: Organization,
        start: ShowStatus,
        target: ShowStatus,
    ):
        show = await _show(db_session, organization, status=start)

        updated = await show_service.update_show(
            db_session, organization.id, show.id, ShowUpdate(status=target)
        )

        assert updated.status == target

    @pytest.mark.parametrize(
        "start,target",
        [
            (ShowStatus.REHEARSING, ShowStatus.PLANNING),
            (ShowStatus.COMPLETED, ShowStatus.PERFORMING),
            (ShowStatus.CANCELLED, ShowStatus.PLANNING),
        ],
    )
    async def test_rejected_status_changes(
        self,
        db_session: AsyncSession,
        organization: Organization,
        start: ShowStatus,
        target: ShowStatus,
    ):
        show = await _show(db_session, organization, status=start)

        with pytest.raises(ValidationError, match="Cannot change show status"):
            await show_service.update_show(
                db_session, organization.id, show.id, ShowUpdate(status=target)
            )

    async def test_update_replaces_staff_set(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        first, second = await create_batch_async(
            StaffMemberFactory, db_session, 2, organization_id=organization.id
        )
        await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [StaffAssignmentInput(staff_member_id=first.id, role=StaffRole.REGISTA)],
        )

        await show_service.update_show(
            db_session,
            organization.id,
            show.id,
            ShowUpdate(
                staff_assignments=[
                    StaffAssignmentInput(staff_member_id=second.id, role=StaffRole.COREOGRAFO)
                ]
            ),
        )

        assignments = await staff_service.get_show_assignments(
            db_session, organization.id, show.id
        )
        assert [a.staff_member_id for a in assignments] == [second.id]

    async def test_update_without_staff_keeps_staff_set(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        staff = await create_async(StaffMemberFactory, db_session, organization_id=organization.id)
        await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [StaffAssignmentInput(staff_member_id=staff.id, role=StaffRole.REGISTA)],
        )

        await show_service.update_show(
            db_session, organization.id, show.id, ShowUpdate(venue="Teatro Piccolo")
        )

        assert len(
            await staff_service.get_show_assignments(db_session, organization.id, show.id)
        ) == 1

    async def test_delete_show_blocked_by_active_roles(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        await _role(db_session, organization, show.id)

        with pytest.raises(ConflictError, match="active roles"):
            await show_service.delete_show(db_session, organization.id, show.id)

    async def test_delete_show_with_inactive_roles(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        await _role(db_session, organization, show.id, is_active=False)

        assert await show_service.delete_show(db_session, organization.id, show.id) is True

    async def test_list_shows_by_status(
        self, db_session: AsyncSession, organization: Organization
    ):
        await _show(db_session, organization, status=ShowStatus.REHEARSING)
        await _show(db_session, organization)

        page = await show_service.list_shows(
            db_session, organization.id, ShowFilters(status=ShowStatus.REHEARSING)
        )

        assert page.total == 1
        assert page.data[0].status == ShowStatus.REHEARSING


@pytest.mark.integration
class TestRoles:
    async def test_create_role_requires_show_in_organization(
        self,
        db_session: AsyncSession,
        organization: Organization,
        other_organization: Organization,
    ):
        foreign_show = await _show(db_session, other_organization)

        with pytest.raises(NotFoundError, match="Show not found"):
            await show_service.create_role(
                db_session, organization.id, RoleCreate(show_id=foreign_show.id, name="Ariel")
            )

    async def test_create_and_rename_role(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await show_service.create_role(
            db_session, organization.id, RoleCreate(show_id=show.id, name=" Ariel ")
        )

        renamed = await show_service.update_role(
            db_session, organization.id, role.id, RoleUpdate(name="Prospero")
        )

        assert renamed.id == role.id
        assert renamed.name == "Prospero"

    async def test_role_with_open_casting_cannot_be_deleted(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )

        with pytest.raises(ConflictError, match="active castings"):
            await show_service.delete_role(db_session, organization.id, role.id)

    async def test_role_with_completed_castings_can_be_deleted(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        casting = await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )
        await show_service.uncast_student(db_session, organization.id, casting.id)

        assert await show_service.delete_role(db_session, organization.id, role.id) is True


@pytest.mark.integration
class TestCastings:
    async def test_cast_student(self, db_session: AsyncSession, organization: Organization):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)

        casting = await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )

        assert casting.status == CastingStatus.ASSIGNED
        assert casting.organization_id == organization.id

    async def test_double_cast_conflicts(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        payload = CastingCreate(role_id=role.id, student_id=student.id)
        await show_service.cast_student(db_session, organization.id, payload)

        with pytest.raises(ConflictError, match="already cast"):
            await show_service.cast_student(db_session, organization.id, payload)

    async def test_recast_after_completion(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        payload = CastingCreate(role_id=role.id, student_id=student.id)
        first = await show_service.cast_student(db_session, organization.id, payload)
        await show_service.uncast_student(db_session, organization.id, first.id)

        second = await show_service.cast_student(db_session, organization.id, payload)

        assert second.id != first.id

    async def test_cast_foreign_student_is_not_found(
        self,
        db_session: AsyncSession,
        organization: Organization,
        other_organization: Organization,
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        foreign = await _student(db_session, other_organization)

        with pytest.raises(NotFoundError, match="Student not found"):
            await show_service.cast_student(
                db_session,
                organization.id,
                CastingCreate(role_id=role.id, student_id=foreign.id),
            )

    async def test_uncast_is_idempotent(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        casting = await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )

        await show_service.uncast_student(db_session, organization.id, casting.id)
        again = await show_service.uncast_student(db_session, organization.id, casting.id)

        assert again.status == CastingStatus.COMPLETED

    async def test_casting_moves_forward_only(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        casting = await create_async(
            CastingFactory,
            db_session,
            organization_id=organization.id,
            role_id=role.id,
            student_id=student.id,
            status=CastingStatus.REHEARSING,
        )

        with pytest.raises(ValidationError, match="from rehearsing to confirmed"):
            await show_service.update_casting(
                db_session,
                organization.id,
                casting.id,
                CastingUpdate(status=CastingStatus.CONFIRMED),
            )

        updated = await show_service.update_casting(
            db_session,
            organization.id,
            casting.id,
            CastingUpdate(status=CastingStatus.PERFORMING),
        )
        assert updated.status == CastingStatus.PERFORMING

    async def test_list_castings_by_show(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        other_show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        other_role = await _role(db_session, organization, other_show.id)
        student = await _student(db_session, organization)
        casting = await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )
        await show_service.cast_student(
            db_session,
            organization.id,
            CastingCreate(role_id=other_role.id, student_id=student.id),
        )

        page = await show_service.list_castings(
            db_session, organization.id, CastingFilters(show_id=show.id)
        )
        by_show = await show_service.get_castings_by_show(db_session, organization.id, show.id)

        assert [c.id for c in page.data] == [casting.id]
        assert [c.id for c in by_show] == [casting.id]


@pytest.mark.integration
class TestShowStats:
    async def test_stats(self, db_session: AsyncSession, organization: Organization):
        show = await _show(db_session, organization)
        lead, chorus, spare = await create_batch_async(
            RoleFactory, db_session, 3, organization_id=organization.id, show_id=show.id
        )
        statuses = [
            (lead, CastingStatus.ASSIGNED),
            (lead, CastingStatus.COMPLETED),
            (chorus, CastingStatus.REHEARSING),
            (spare, CastingStatus.COMPLETED),
        ]
        for role, status in statuses:
            student = await _student(db_session, organization)
            await create_async(
                CastingFactory,
                db_session,
                organization_id=organization.id,
                role_id=role.id,
                student_id=student.id,
                status=status,
            )

        stats = await show_service.get_show_stats(db_session, organization.id, show.id)

        assert stats.total_roles == 3
        assert stats.cast_roles == 2
        assert stats.total_castings == 4
        assert stats.active_castings == 1
        assert stats.rehearsing_castings == 1
        assert stats.performing_castings == 0
        assert stats.completed_castings == 2

    async def test_stats_for_unknown_show_raise(
        self, db_session: AsyncSession, organization: Organization
    ):
        with pytest.raises(NotFoundError):
            await show_service.get_show_stats(db_session, organization.id, "missing")


@pytest.mark.integration
class TestBulkCasting:
    async def test_bulk_cast_reports_duplicates(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        first, second = await create_batch_async(
            StudentFactory, db_session, 2, organization_id=organization.id
        )

        result = await show_service.bulk_cast_students(
            db_session, organization.id, role.id, [first.id, second.id, first.id, "ghost"]
        )

        assert [item.error_kind for item in result.items] == [
            None,
            None,
            ErrorKind.CONFLICT,
            ErrorKind.NOT_FOUND,
        ]

    async def test_bulk_cast_unknown_role_fails_every_item(
        self, db_session: AsyncSession, organization: Organization
    ):
        student = await _student(db_session, organization)

        result = await show_service.bulk_cast_students(
            db_session, organization.id, "missing-role", [student.id]
        )

        assert result.succeeded == []
        assert result.failed[0].error_message == "Role not found"

    async def test_bulk_update_castings(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await _show(db_session, organization)
        role = await _role(db_session, organization, show.id)
        student = await _student(db_session, organization)
        casting = await show_service.cast_student(
            db_session, organization.id, CastingCreate(role_id=role.id, student_id=student.id)
        )

        result = await show_service.bulk_update_castings(
            db_session,
            organization.id,
            [
                (casting.id, CastingUpdate(status=CastingStatus.CONFIRMED)),
                (casting.id, CastingUpdate(status=CastingStatus.ASSIGNED)),
            ],
        )

        assert result.items[0].ok
        assert result.items[1].error_kind == ErrorKind.VALIDATION
