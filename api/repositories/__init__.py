"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping services focused on
business rules. This separation provides:
- Single source of truth for tenant scoping (every query filters by
  organization_id)
- Easier testing (repositories can be mocked)
- Reusable queries across services
"""

from repositories.base import Page, TenantRepository
from repositories.class_repository import ClassRepository, EnrollmentRepository
from repositories.organization_repository import (
    OrganizationMemberRepository,
    OrganizationRepository,
)
from repositories.show_repository import (
    CastingRepository,
    RoleRepository,
    ShowRepository,
)
from repositories.staff_repository import (
    ShowStaffAssignmentRepository,
    StaffMemberRepository,
)
from repositories.student_repository import StudentRepository
from repositories.utils import log_slow_query

__all__ = [
    "CastingRepository",
    "ClassRepository",
    "EnrollmentRepository",
    "OrganizationMemberRepository",
    "OrganizationRepository",
    "Page",
    "RoleRepository",
    "ShowRepository",
    "ShowStaffAssignmentRepository",
    "StaffMemberRepository",
    "StudentRepository",
    "TenantRepository",
    "log_slow_query",
]
