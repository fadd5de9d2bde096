"""Service layer for business logic.

Services encapsulate the cross-record rules of a theater organization,
keeping the HTTP boundary thin. This separation provides:
- Clear business rules in one place (capacity, uniqueness, quorum, linking)
- Orchestration of multiple repositories
- Reusable business logic across endpoints and the CLI

Layer hierarchy:
    Routes / CLI -> Services (Business Logic) -> Repositories (Database)

Services should:
- Take an AsyncSession and an organization_id as their first arguments
- Contain all business rules and validation
- Raise core.errors DomainError subclasses for rule violations
- Flush but never commit (the caller owns the transaction)

Services should NOT:
- Directly execute SQL queries (use repositories)
- Know about HTTP request/response details
"""
