"""Document-style collection facade over SQLAlchemy models.

Filters are plain mappings of column name to a value (equality, None means
IS NULL) or to an operator mapping, e.g. ``{"reset_password_expires_at": {"$gt": now_ms}}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.exc import IntegrityError

from accounts.models.base import Base

if TYPE_CHECKING:
    from accounts.core.database import Database

ModelT = TypeVar("ModelT", bound=Base)

Filter = Mapping[str, Any]

_OPERATORS = {
    "$gt": lambda column, value: column > value,
    "$gte": lambda column, value: column >= value,
    "$lt": lambda column, value: column < value,
    "$lte": lambda column, value: column <= value,
    "$ne": lambda column, value: column.is_not(None) if value is None else column != value,
    "$in": lambda column, value: column.in_(list(value)),
}


class DuplicateKeyError(Exception):
    """Raised when a write violates a unique index."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def build_clauses(model: type[Base], filter: Filter | None) -> list[ColumnElement[bool]]:
    """Translate a filter mapping into SQLAlchemy WHERE clauses for model."""
    clauses: list[ColumnElement[bool]] = []
    for field, condition in (filter or {}).items():
        column = model.__table__.columns.get(field)
        if column is None:
            raise ValueError(f"Unknown field {field!r} for {model.__name__}")
        column = getattr(model, field)
        if isinstance(condition, Mapping):
            for op, value in condition.items():
                if op not in _OPERATORS:
                    raise ValueError(f"Unsupported filter operator {op!r}")
                clauses.append(_OPERATORS[op](column, value))
        elif condition is None:
            clauses.append(column.is_(None))
        else:
            clauses.append(column == condition)
    return clauses


class Collection(Generic[ModelT]):
    """
    findOne/create/save/deleteMany/countDocuments over one mapped model.

    Each call runs in its own short session on the shared engine. Returned
    records are detached but fully loaded (expire_on_commit=False).
    """

    def __init__(self, database: Database, model: type[ModelT]) -> None:
        self.database = database
        self.model = model

    async def find_one(self, filter: Filter) -> ModelT | None:
        stmt = select(self.model).where(*build_clauses(self.model, filter)).limit(1)
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def create(self, record: ModelT) -> ModelT:
        """Insert record. Raises DuplicateKeyError on a unique-index violation."""
        async with self.database.session() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(str(e.orig)) from e
            return record

    async def save(self, record: ModelT) -> None:
        async with self.database.session() as session:
            await session.merge(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(str(e.orig)) from e

    async def delete_many(self, filter: Filter) -> int:
        stmt = delete(self.model).where(*build_clauses(self.model, filter))
        async with self.database.session() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0

    async def count_documents(self, filter: Filter | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*build_clauses(self.model, filter))
        )
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())
