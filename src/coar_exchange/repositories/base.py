"""Shared async repository plumbing for the notification and job tables."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseRepository(Generic[RowT]):
    """Subclasses name their row class; the caller owns commit and rollback."""

    model: ClassVar[type[Base]]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> RowT | None:
        return await self.session.get(self.model, key)

    async def add(self, **values: Any) -> RowT:
        """Insert a row and flush so constraint violations surface here."""
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: RowT, **values: Any) -> RowT:
        for name, value in values.items():
            setattr(row, name, value)
        await self.session.flush()
        return row

    async def first_by(self, **criteria: Any) -> RowT | None:
        result = await self.session.execute(select(self.model).filter_by(**criteria).limit(1))
        return result.scalar_one_or_none()
