"""
Tenant-partitioned document store for SCIM resources.

The services only need keyed CRUD, a counted range query and accurate affected
row counts. `tenant_id` is a required keyword argument on every call, so there
is no way to express a cross-tenant query through this adapter.
"""

from __future__ import annotations

from typing import Any, Sequence, TypeVar

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.scim_resource import ScimGroupRecord, ScimUserRecord
from app.shared.core.exceptions import DuplicateRecordError, StoreError

logger = structlog.get_logger()

RecordT = TypeVar("RecordT", ScimUserRecord, ScimGroupRecord)


def _predicate(model: type[RecordT], tenant_id: str, equals: dict[str, Any]) -> list[Any]:
    if not tenant_id:
        raise StoreError("tenant_id is required for every store operation")
    clauses = [model.tenant_id == tenant_id]
    for column, value in equals.items():
        clauses.append(getattr(model, column) == value)
    return clauses


class ResourceStore:
    """
    Usage:
        store = ResourceStore(db)
        row = await store.select_one(ScimUserRecord, tenant_id=tenant, id=user_id)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def insert(self, model: type[RecordT], row: dict[str, Any]) -> RecordT:
        record = model(**row)
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateRecordError(
                f"{model.__tablename__} row violates a uniqueness constraint"
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("store_insert_failed", table=model.__tablename__, error=str(exc))
            raise StoreError(f"Error creating {model.__tablename__} row") from exc
        return record

    async def select_one(
        self, model: type[RecordT], *, tenant_id: str, **equals: Any
    ) -> RecordT | None:
        try:
            result = await self.db.execute(
                select(model)
                .where(*_predicate(model, tenant_id, equals))
                .limit(1)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            logger.error("store_select_failed", table=model.__tablename__, error=str(exc))
            raise StoreError(f"Error reading {model.__tablename__}") from exc
        return result.scalars().first()

    async def select_range(
        self,
        model: type[RecordT],
        *,
        tenant_id: str,
        offset: int,
        limit: int,
        **equals: Any,
    ) -> tuple[Sequence[RecordT], int]:
        """Return one page of rows plus the total number of matching rows."""
        clauses = _predicate(model, tenant_id, equals)
        offset = max(offset, 0)
        limit = max(limit, 0)
        try:
            total = (
                await self.db.execute(
                    select(func.count()).select_from(model).where(*clauses)
                )
            ).scalar_one()
            rows: Sequence[RecordT] = []
            if limit:
                rows = (
                    await self.db.execute(
                        select(model)
                        .where(*clauses)
                        .order_by(model.created_at.asc(), model.id.asc())
                        .offset(offset)
                        .limit(limit)
                        .execution_options(populate_existing=True)
                    )
                ).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("store_range_failed", table=model.__tablename__, error=str(exc))
            raise StoreError(f"Error listing {model.__tablename__}") from exc
        return rows, int(total or 0)

    async def update(
        self,
        model: type[RecordT],
        values: dict[str, Any],
        *,
        tenant_id: str,
        **equals: Any,
    ) -> int:
        try:
            result = await self.db.execute(
                update(model)
                .where(*_predicate(model, tenant_id, equals))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateRecordError(
                f"{model.__tablename__} update violates a uniqueness constraint"
            ) from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("store_update_failed", table=model.__tablename__, error=str(exc))
            raise StoreError(f"Error updating {model.__tablename__}") from exc
        return int(result.rowcount or 0)

    async def delete_where(
        self, model: type[RecordT], *, tenant_id: str, **equals: Any
    ) -> int:
        try:
            result = await self.db.execute(
                delete(model)
                .where(*_predicate(model, tenant_id, equals))
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("store_delete_failed", table=model.__tablename__, error=str(exc))
            raise StoreError(f"Error deleting from {model.__tablename__}") from exc
        return int(result.rowcount or 0)
