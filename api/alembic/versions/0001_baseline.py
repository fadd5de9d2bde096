"""baseline schema for theater organizations

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Tenant root (organizations), memberships, staff, students, classes,
enrollments, shows, roles, castings and show staff assignments.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None

STAFF_ROLES = (
    "insegnante",
    "regista",
    "tecnico",
    "assistente",
    "drammaturgo",
    "coreografo",
    "scenografo",
    "costumista",
    "vocal_coach",
    "movimento_scenico",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _tenant_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "organization_id",
            sa.String(36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
    ]


def _tenant_indexes(table: str) -> None:
    op.create_index(f"ix_{table}_organization_id", table, ["organization_id"])
    op.create_index(f"ix_{table}_created_at", table, ["created_at"])


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("state", sa.String(255), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_organizations_created_at", "organizations", ["created_at"])

    op.create_table(
        "staff_members",
        *_tenant_columns(),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "primary_role",
            sa.Enum(*STAFF_ROLES, name="staff_role", native_enum=False),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("staff_members")
    op.create_index(
        "ix_staff_members_org_email", "staff_members", ["organization_id", "email"]
    )

    op.create_table(
        "organization_members",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "organization_id",
            sa.String(36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("admin", "teacher", "staff", name="organization_role", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invited_by", sa.String(255), nullable=True),
        sa.Column(
            "staff_member_id",
            sa.String(36),
            sa.ForeignKey("staff_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
    )
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"])
    op.create_index(
        "ix_members_org_role",
        "organization_members",
        ["organization_id", "role", "is_active"],
    )
    op.create_index(
        "uq_member_staff_member",
        "organization_members",
        ["staff_member_id"],
        unique=True,
        postgresql_where=sa.text("staff_member_id IS NOT NULL"),
        sqlite_where=sa.text("staff_member_id IS NOT NULL"),
    )

    op.create_table(
        "students",
        *_tenant_columns(),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("grade_level", sa.String(50), nullable=True),
        sa.Column("emergency_contact_name", sa.String(255), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(50), nullable=True),
        sa.Column("medical_info", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("students")
    op.create_index("ix_students_org_email", "students", ["organization_id", "email"])

    op.create_table(
        "classes",
        *_tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("teacher_id", sa.String(255), nullable=True),
        sa.Column("max_students", sa.Integer(), nullable=True),
        sa.Column("age_range_min", sa.Integer(), nullable=True),
        sa.Column("age_range_max", sa.Integer(), nullable=True),
        sa.Column("schedule", sa.JSON(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("classes")
    op.create_index("ix_classes_org_teacher", "classes", ["organization_id", "teacher_id"])

    op.create_table(
        "class_enrollments",
        *_tenant_columns(),
        sa.Column(
            "class_id",
            sa.String(36),
            sa.ForeignKey("classes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "active",
                "inactive",
                "completed",
                "dropped",
                name="enrollment_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("class_enrollments")
    op.create_index("ix_class_enrollments_student_id", "class_enrollments", ["student_id"])
    op.create_index(
        "ix_enrollments_class_status", "class_enrollments", ["class_id", "status"]
    )
    op.create_index(
        "uq_enrollments_active_pair",
        "class_enrollments",
        ["class_id", "student_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "shows",
        *_tenant_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("director_id", sa.String(255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("venue", sa.String(255), nullable=True),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "planning",
                "rehearsing",
                "performing",
                "completed",
                "cancelled",
                name="show_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("shows")
    op.create_index("ix_shows_org_director", "shows", ["organization_id", "director_id"])

    op.create_table(
        "roles",
        *_tenant_columns(),
        sa.Column(
            "show_id",
            sa.String(36),
            sa.ForeignKey("shows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "character_type",
            sa.Enum(
                "lead",
                "supporting",
                "ensemble",
                "crew",
                name="character_type",
                native_enum=False,
            ),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("roles")
    op.create_index("ix_roles_show_id", "roles", ["show_id"])

    op.create_table(
        "castings",
        *_tenant_columns(),
        sa.Column(
            "role_id",
            sa.String(36),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "assigned",
                "confirmed",
                "rehearsing",
                "performing",
                "completed",
                name="casting_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("castings")
    op.create_index("ix_castings_role_id", "castings", ["role_id"])
    op.create_index("ix_castings_student_id", "castings", ["student_id"])
    op.create_index(
        "uq_castings_open_pair",
        "castings",
        ["role_id", "student_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'completed'"),
        sqlite_where=sa.text("status <> 'completed'"),
    )

    op.create_table(
        "show_staff_assignments",
        *_tenant_columns(),
        sa.Column(
            "show_id",
            sa.String(36),
            sa.ForeignKey("shows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "staff_member_id",
            sa.String(36),
            sa.ForeignKey("staff_members.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "role",
            sa.Enum(*STAFF_ROLES, name="staff_role", native_enum=False),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _tenant_indexes("show_staff_assignments")
    op.create_index(
        "ix_show_staff_assignments_show_id", "show_staff_assignments", ["show_id"]
    )


def downgrade() -> None:
    op.drop_table("show_staff_assignments")
    op.drop_table("castings")
    op.drop_table("roles")
    op.drop_table("shows")
    op.drop_table("class_enrollments")
    op.drop_table("classes")
    op.drop_table("students")
    op.drop_table("organization_members")
    op.drop_table("staff_members")
    op.drop_table("organizations")
