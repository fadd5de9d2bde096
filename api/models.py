"""SQLAlchemy models for theater organizations.

Every entity except Organization is tenant-scoped: it carries an
organization_id and is only ever read or written through a filter on it.
"""

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


def _enum_column(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


class OrganizationRole(str, PyEnum):
    """Role of a user account inside one organization."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STAFF = "staff"


class StaffRole(str, PyEnum):
    """Production role of a staff member (independent of user accounts)."""

    INSEGNANTE = "insegnante"
    REGISTA = "regista"
    TECNICO = "tecnico"
    ASSISTENTE = "assistente"
    DRAMMATURGO = "drammaturgo"
    COREOGRAFO = "coreografo"
    SCENOGRAFO = "scenografo"
    COSTUMISTA = "costumista"
    VOCAL_COACH = "vocal_coach"
    MOVIMENTO_SCENICO = "movimento_scenico"


class EnrollmentStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    DROPPED = "dropped"


class ShowStatus(str, PyEnum):
    PLANNING = "planning"
    REHEARSING = "rehearsing"
    PERFORMING = "performing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CharacterType(str, PyEnum):
    LEAD = "lead"
    SUPPORTING = "supporting"
    ENSEMBLE = "ensemble"
    CREW = "crew"


class CastingStatus(str, PyEnum):
    ASSIGNED = "assigned"
    CONFIRMED = "confirmed"
    REHEARSING = "rehearsing"
    PERFORMING = "performing"
    COMPLETED = "completed"


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class TenantMixin(TimestampMixin):
    """Mixin for rows owned by exactly one organization."""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String(36), primary_key=True, default=new_id)

    @declared_attr
    def organization_id(cls) -> Mapped[str]:
        return mapped_column(
            String(36),
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class Organization(TimestampMixin, Base):
    """Tenant root. The slug is globally unique and immutable."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    website_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class OrganizationMember(Base):
    """Links a user account to an organization with a role.

    staff_member_id is the optional 1:1 link to a StaffMember record of the
    same organization. The partial unique index keeps a staff member from
    being claimed by two members.
    """

    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
        Index(
            "uq_member_staff_member",
            "staff_member_id",
            unique=True,
            postgresql_where=text("staff_member_id IS NOT NULL"),
            sqlite_where=text("staff_member_id IS NOT NULL"),
        ),
        Index("ix_members_org_role", "organization_id", "role", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[OrganizationRole] = mapped_column(
        _enum_column(OrganizationRole, "organization_role"),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    joined_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    invited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    staff_member_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("staff_members.id", ondelete="SET NULL"),
        nullable=True,
    )


class StaffMember(TenantMixin, Base):
    """A person on the production team. Not tied to a user account."""

    __tablename__ = "staff_members"
    __table_args__ = (Index("ix_staff_members_org_email", "organization_id", "email"),)

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    primary_role: Mapped[StaffRole] = mapped_column(
        _enum_column(StaffRole, "staff_role"),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Student(TenantMixin, Base):
    __tablename__ = "students"
    __table_args__ = (Index("ix_students_org_email", "organization_id", "email"),)

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    grade_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    emergency_contact_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    emergency_contact_phone: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    medical_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SchoolClass(TenantMixin, Base):
    """A class (course) students enroll in.

    schedule is stored as JSON: {"days": [...], "start_time": "18:00",
    "end_time": "19:30", "timezone": "Europe/Rome"}.
    """

    __tablename__ = "classes"
    __table_args__ = (Index("ix_classes_org_teacher", "organization_id", "teacher_id"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    teacher_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    max_students: Mapped[int | None] = mapped_column(Integer, nullable=True)
    age_range_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    age_range_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    schedule: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ClassEnrollment(TenantMixin, Base):
    """A student's seat in a class.

    At most one active row per (class, student); dropped and completed rows
    are kept as history, so re-enrollment inserts a new row.
    """

    __tablename__ = "class_enrollments"
    __table_args__ = (
        Index(
            "uq_enrollments_active_pair",
            "class_id",
            "student_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_enrollments_class_status", "class_id", "status"),
    )

    class_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    status: Mapped[EnrollmentStatus] = mapped_column(
        _enum_column(EnrollmentStatus, "enrollment_status"),
        nullable=False,
        default=EnrollmentStatus.ACTIVE,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Show(TenantMixin, Base):
    __tablename__ = "shows"
    __table_args__ = (Index("ix_shows_org_director", "organization_id", "director_id"),)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    director_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[ShowStatus] = mapped_column(
        _enum_column(ShowStatus, "show_status"),
        nullable=False,
        default=ShowStatus.PLANNING,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Role(TenantMixin, Base):
    """A character or position within a show."""

    __tablename__ = "roles"

    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    character_type: Mapped[CharacterType | None] = mapped_column(
        _enum_column(CharacterType, "character_type"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Casting(TenantMixin, Base):
    """A student cast in a role. Completed castings release the pair."""

    __tablename__ = "castings"
    __table_args__ = (
        Index(
            "uq_castings_open_pair",
            "role_id",
            "student_id",
            unique=True,
            postgresql_where=text("status <> 'completed'"),
            sqlite_where=text("status <> 'completed'"),
        ),
    )

    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    status: Mapped[CastingStatus] = mapped_column(
        _enum_column(CastingStatus, "casting_status"),
        nullable=False,
        default=CastingStatus.ASSIGNED,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class ShowStaffAssignment(TenantMixin, Base):
    """A staff member working on a show. Replaced as a whole set per show."""

    __tablename__ = "show_staff_assignments"

    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    staff_member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("staff_members.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[StaffRole] = mapped_column(
        _enum_column(StaffRole, "staff_role"),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    staff_member: Mapped["StaffMember"] = relationship(lazy="selectin")
