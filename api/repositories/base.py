"""Tenant-scoped repository base and pagination helpers.

Every query built here starts from ``organization_id == :org``; an id that
belongs to another organization behaves exactly like an id that does not
exist.
"""

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from repositories.utils import log_slow_query
from schemas import Pagination

T = TypeVar("T")
ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the unpaginated total."""

    data: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def resolve_window(pagination: Pagination | None) -> tuple[int, int, int]:
    """Return (page, limit, offset). An explicit offset wins over the page."""
    settings = get_settings()
    pagination = pagination or Pagination()
    limit = min(pagination.limit or settings.default_page_size, settings.max_page_size)
    offset = (
        pagination.offset
        if pagination.offset is not None
        else (pagination.page - 1) * limit
    )
    return pagination.page, limit, offset


async def paginate(
    db: AsyncSession, stmt: Select[Any], pagination: Pagination | None
) -> Page[T]:
    """Run ``stmt`` twice: once for the total count, once for the window."""
    page, limit, offset = resolve_window(pagination)
    total = await db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )
    result = await db.execute(stmt.limit(limit).offset(offset))
    return Page(data=list(result.scalars().all()), total=total or 0, page=page, limit=limit)


def search_clause(model: Any, columns: tuple[str, ...], term: str):
    """Case-insensitive substring match over ``columns`` (ORed)."""
    return or_(
        *(getattr(model, column).icontains(term, autoescape=True) for column in columns)
    )


class TenantRepository(Generic[ModelT]):
    """CRUD for a model carrying ``id``, ``organization_id`` and ``created_at``.

    Subclasses set ``model`` and ``search_columns`` and may override
    ``_apply_filter`` for filters that are not plain column equality.
    """

    model: ClassVar[type]
    search_columns: ClassVar[tuple[str, ...]] = ()

    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped(self, organization_id: str) -> Select[Any]:
        return select(self.model).where(self.model.organization_id == organization_id)

    def _apply_filter(self, stmt: Select[Any], name: str, value: Any) -> Select[Any]:
        if name == "search":
            return stmt.where(search_clause(self.model, self.search_columns, value))
        return stmt.where(getattr(self.model, name) == value)

    async def get_by_id(self, entity_id: str, organization_id: str) -> ModelT | None:
        result = await self.db.execute(
            self._scoped(organization_id).where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    @log_slow_query("tenant_find_all")
    async def find_all(
        self,
        organization_id: str,
        filters: BaseModel | None = None,
        pagination: Pagination | None = None,
    ) -> Page[ModelT]:
        """List rows newest first. Unset or None filters are ignored."""
        stmt = self._scoped(organization_id)
        if filters is not None:
            for name, value in filters.model_dump(exclude_none=True).items():
                if name == "search" and not value.strip():
                    continue
                stmt = self._apply_filter(stmt, name, value)
        stmt = stmt.order_by(self.model.created_at.desc(), self.model.id)
        return await paginate(self.db, stmt, pagination)

    async def create(self, organization_id: str, **values: Any) -> ModelT:
        """Insert a row and flush so defaults and constraint errors surface now."""
        entity = self.model(organization_id=organization_id, **values)
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def update(
        self, entity_id: str, organization_id: str, **values: Any
    ) -> ModelT | None:
        entity = await self.get_by_id(entity_id, organization_id)
        if entity is None:
            return None
        for name, value in values.items():
            setattr(entity, name, value)
        entity.updated_at = datetime.now(UTC)
        await self.db.flush()
        return entity

    async def delete(self, entity_id: str, organization_id: str) -> bool:
        result = await self.db.execute(
            delete(self.model).where(
                self.model.id == entity_id,
                self.model.organization_id == organization_id,
            )
        )
        return result.rowcount > 0

    async def delete_many(self, entity_ids: list[str], organization_id: str) -> int:
        if not entity_ids:
            return 0
        result = await self.db.execute(
            delete(self.model).where(
                self.model.id.in_(entity_ids),
                self.model.organization_id == organization_id,
            )
        )
        return result.rowcount

    async def exists(self, entity_id: str, organization_id: str) -> bool:
        result = await self.db.execute(
            select(self.model.id)
            .where(
                self.model.id == entity_id,
                self.model.organization_id == organization_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_recent(self, organization_id: str, limit: int) -> list[ModelT]:
        """Newest rows by created_at."""
        result = await self.db.execute(
            self._scoped(organization_id)
            .order_by(self.model.created_at.desc(), self.model.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _list(self, stmt: Select[Any]) -> list[ModelT]:
        result = await self.db.execute(stmt.order_by(self.model.created_at.desc()))
        return list(result.scalars().all())
