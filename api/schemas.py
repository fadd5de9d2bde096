"""Pydantic schemas for service inputs and read models.

Create schemas carry required fields; Update schemas make every field
optional and services apply only the fields the caller set
(``model_dump(exclude_unset=True)``).
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from models import (
    CastingStatus,
    CharacterType,
    EnrollmentStatus,
    OrganizationRole,
    ShowStatus,
    StaffRole,
)

# =============================================================================
# Pagination
# =============================================================================


class Pagination(BaseModel):
    """Page request. When offset is given it wins over (page - 1) * limit."""

    page: int = Field(default=1, ge=1)
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)


# =============================================================================
# Students
# =============================================================================


class StudentCreate(BaseModel):
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    grade_level: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    medical_info: str | None = None
    notes: str | None = None


class StudentUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    grade_level: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    medical_info: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class StudentFilters(BaseModel):
    is_active: bool | None = None
    grade_level: str | None = None
    search: str | None = None


class StudentStats(BaseModel):
    total_active: int
    by_grade: dict[str, int]


# =============================================================================
# Classes and enrollments
# =============================================================================

Weekday = Literal[
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]


class ClassSchedule(BaseModel):
    days: list[Weekday]
    start_time: time
    end_time: time
    timezone: str | None = None


class ClassCreate(BaseModel):
    name: str
    description: str | None = None
    teacher_id: str | None = None
    max_students: int | None = None
    age_range_min: int | None = Field(default=None, ge=0, le=100)
    age_range_max: int | None = Field(default=None, ge=0, le=100)
    schedule: ClassSchedule | None = None
    start_date: date | None = None
    end_date: date | None = None


class ClassUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    teacher_id: str | None = None
    max_students: int | None = None
    age_range_min: int | None = Field(default=None, ge=0, le=100)
    age_range_max: int | None = Field(default=None, ge=0, le=100)
    schedule: ClassSchedule | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool | None = None


class ClassFilters(BaseModel):
    is_active: bool | None = None
    teacher_id: str | None = None
    search: str | None = None


class EnrollmentCreate(BaseModel):
    class_id: str
    student_id: str
    notes: str | None = None


class EnrollmentUpdate(BaseModel):
    status: EnrollmentStatus | None = None
    notes: str | None = None


class EnrollmentFilters(BaseModel):
    class_id: str | None = None
    student_id: str | None = None
    status: EnrollmentStatus | None = None


class ClassStats(BaseModel):
    total_enrolled: int
    active: int
    completed: int
    dropped: int
    inactive: int


# =============================================================================
# Shows, roles and castings
# =============================================================================


class StaffAssignmentInput(BaseModel):
    staff_member_id: str
    role: StaffRole
    notes: str | None = None


class ShowCreate(BaseModel):
    title: str
    description: str | None = None
    director_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    staff_assignments: list[StaffAssignmentInput] | None = None


class ShowUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    director_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    status: ShowStatus | None = None
    is_active: bool | None = None
    staff_assignments: list[StaffAssignmentInput] | None = None


class ShowFilters(BaseModel):
    is_active: bool | None = None
    director_id: str | None = None
    status: ShowStatus | None = None
    search: str | None = None


class RoleCreate(BaseModel):
    show_id: str
    name: str
    description: str | None = None
    character_type: CharacterType | None = None


class RoleUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    character_type: CharacterType | None = None
    is_active: bool | None = None


class RoleFilters(BaseModel):
    show_id: str | None = None
    character_type: CharacterType | None = None
    is_active: bool | None = None
    search: str | None = None


class CastingCreate(BaseModel):
    role_id: str
    student_id: str
    notes: str | None = None


class CastingUpdate(BaseModel):
    status: CastingStatus | None = None
    notes: str | None = None


class CastingFilters(BaseModel):
    role_id: str | None = None
    student_id: str | None = None
    show_id: str | None = None
    status: CastingStatus | None = None


class ShowStats(BaseModel):
    total_roles: int
    cast_roles: int
    total_castings: int
    active_castings: int
    rehearsing_castings: int
    performing_castings: int
    completed_castings: int


# =============================================================================
# Staff
# =============================================================================


class StaffMemberCreate(BaseModel):
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    primary_role: StaffRole
    notes: str | None = None


class StaffMemberUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    primary_role: StaffRole | None = None
    notes: str | None = None
    is_active: bool | None = None


class StaffMemberFilters(BaseModel):
    primary_role: StaffRole | None = None
    is_active: bool | None = None
    search: str | None = None


# =============================================================================
# Organizations
# =============================================================================


class OrganizationCreate(BaseModel):
    name: str
    slug: str
    description: str | None = None
    contact_email: str | None = None
    website_url: str | None = None


class OrganizationUpdate(BaseModel):
    """Slug cannot change after creation."""

    name: str | None = None
    description: str | None = None
    logo_url: str | None = None
    website_url: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_active: bool | None = None


class OrganizationFilters(BaseModel):
    is_active: bool | None = None
    search: str | None = None


class OrganizationStats(BaseModel):
    total_members: int
    active_members: int
    admins: int
    teachers: int
    staff: int


class MemberData(BaseModel):
    """Read model for an organization membership."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    user_id: str
    role: OrganizationRole
    is_active: bool
    invited_at: datetime
    joined_at: datetime | None = None
    invited_by: str | None = None
    staff_member_id: str | None = None


# =============================================================================
# Dashboard
# =============================================================================

ActivityType = Literal["student_added", "class_created", "show_scheduled"]


class ActivityItem(BaseModel):
    id: str
    type: ActivityType
    title: str
    timestamp: datetime


class ClassSummary(BaseModel):
    total_active: int
    total_enrollments: int


class ShowSummary(BaseModel):
    total_active: int
    planning_shows: int
    rehearsing_shows: int
    performing_shows: int


class DashboardData(BaseModel):
    total_students: int
    active_classes: int
    upcoming_shows: int
    student_stats: StudentStats
    class_stats: ClassSummary
    show_stats: ShowSummary
    recent_activity: list[ActivityItem]
