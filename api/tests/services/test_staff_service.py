"""Tests for services.staff_service."""

import pytest
from factories import ShowFactory, StaffMemberFactory, create_async
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ValidationError
from models import Organization, StaffRole
from schemas import (
    StaffAssignmentInput,
    StaffMemberCreate,
    StaffMemberFilters,
    StaffMemberUpdate,
)
from services import staff_service


@pytest.mark.integration
class TestStaffMembers:
    async def test_create_staff_member(
        self, db_session: AsyncSession, organization: Organization
    ):
        staff = await staff_service.create_staff_member(
            db_session,
            organization.id,
            StaffMemberCreate(
                first_name="Dario",
                last_name="Fo",
                email=" dario@example.com ",
                primary_role=StaffRole.DRAMMATURGO,
            ),
        )

        assert staff.email == "dario@example.com"
        assert staff.primary_role == StaffRole.DRAMMATURGO

    async def test_blank_last_name_rejected(
        self, db_session: AsyncSession, organization: Organization
    ):
        with pytest.raises(ValidationError, match="Last name is required"):
            await staff_service.create_staff_member(
                db_session,
                organization.id,
                StaffMemberCreate(first_name="Dario", last_name=" ", primary_role=StaffRole.TECNICO),
            )

    async def test_duplicate_email_conflicts_case_insensitively(
        self, db_session: AsyncSession, organization: Organization
    ):
        await create_async(
            StaffMemberFactory,
            db_session,
            organization_id=organization.id,
            email="franca@example.com",
        )

        with pytest.raises(ConflictError):
            await staff_service.create_staff_member(
                db_session,
                organization.id,
                StaffMemberCreate(
                    first_name="Franca",
                    last_name="Rame",
                    email="Franca@Example.com",
                    primary_role=StaffRole.INSEGNANTE,
                ),
            )

    async def test_update_ignores_null_role(
        self, db_session: AsyncSession, organization: Organization
    ):
        staff = await create_async(
            StaffMemberFactory, db_session, organization_id=organization.id
        )

        updated = await staff_service.update_staff_member(
            db_session,
            organization.id,
            staff.id,
            StaffMemberUpdate(primary_role=None, phone="555-0100"),
        )

        assert updated.primary_role == StaffRole.REGISTA
        assert updated.phone == "555-0100"

    async def test_filters_by_role(self, db_session: AsyncSession, organization: Organization):
        await create_async(
            StaffMemberFactory,
            db_session,
            organization_id=organization.id,
            primary_role=StaffRole.SCENOGRAFO,
        )
        await create_async(StaffMemberFactory, db_session, organization_id=organization.id)

        page = await staff_service.list_staff_members(
            db_session,
            organization.id,
            StaffMemberFilters(primary_role=StaffRole.SCENOGRAFO),
        )

        assert page.total == 1
        assert page.data[0].primary_role == StaffRole.SCENOGRAFO

    async def test_get_active_staff_skips_inactive(
        self, db_session: AsyncSession, organization: Organization
    ):
        active = await create_async(
            StaffMemberFactory, db_session, organization_id=organization.id
        )
        await create_async(
            StaffMemberFactory, db_session, organization_id=organization.id, is_active=False
        )

        staff = await staff_service.get_active_staff(db_session, organization.id)

        assert [s.id for s in staff] == [active.id]


@pytest.mark.integration
class TestShowAssignments:
    async def test_replace_with_foreign_staff_keeps_previous_set(
        self,
        db_session: AsyncSession,
        organization: Organization,
        other_organization: Organization,
    ):
        show = await create_async(ShowFactory, db_session, organization_id=organization.id)
        mine = await create_async(StaffMemberFactory, db_session, organization_id=organization.id)
        foreign = await create_async(
            StaffMemberFactory, db_session, organization_id=other_organization.id
        )
        await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [StaffAssignmentInput(staff_member_id=mine.id, role=StaffRole.REGISTA)],
        )

        with pytest.raises(NotFoundError, match="Staff member not found"):
            await staff_service.replace_show_assignments(
                db_session,
                organization.id,
                show.id,
                [
                    StaffAssignmentInput(staff_member_id=mine.id, role=StaffRole.REGISTA),
                    StaffAssignmentInput(staff_member_id=foreign.id, role=StaffRole.TECNICO),
                ],
            )

        assignments = await staff_service.get_show_assignments(
            db_session, organization.id, show.id
        )
        assert [a.staff_member_id for a in assignments] == [mine.id]

    async def test_empty_list_clears_assignments(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await create_async(ShowFactory, db_session, organization_id=organization.id)
        staff = await create_async(StaffMemberFactory, db_session, organization_id=organization.id)
        await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [StaffAssignmentInput(staff_member_id=staff.id, role=StaffRole.COSTUMISTA)],
        )

        created = await staff_service.replace_show_assignments(
            db_session, organization.id, show.id, []
        )

        assert created == []
        assert await staff_service.get_show_assignments(
            db_session, organization.id, show.id
        ) == []

    async def test_assignment_exposes_staff_member(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await create_async(ShowFactory, db_session, organization_id=organization.id)
        staff = await create_async(
            StaffMemberFactory, db_session, organization_id=organization.id, first_name="Emma"
        )

        [assignment] = await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [
                StaffAssignmentInput(
                    staff_member_id=staff.id, role=StaffRole.VOCAL_COACH, notes="Tuesdays"
                )
            ],
        )

        assert assignment.staff_member.first_name == "Emma"
        assert assignment.notes == "Tuesdays"

    async def test_unknown_show_is_not_found(
        self, db_session: AsyncSession, organization: Organization
    ):
        with pytest.raises(NotFoundError, match="Show not found"):
            await staff_service.replace_show_assignments(
                db_session, organization.id, "missing", []
            )

    async def test_remove_show_assignments(
        self, db_session: AsyncSession, organization: Organization
    ):
        show = await create_async(ShowFactory, db_session, organization_id=organization.id)
        staff = await create_async(StaffMemberFactory, db_session, organization_id=organization.id)
        await staff_service.replace_show_assignments(
            db_session,
            organization.id,
            show.id,
            [StaffAssignmentInput(staff_member_id=staff.id, role=StaffRole.TECNICO)],
        )

        assert await staff_service.remove_show_assignments(
            db_session, organization.id, show.id
        ) == 1
