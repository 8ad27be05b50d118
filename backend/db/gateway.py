"""Row-level access to the stock tables.

Every method opens its own short session, commits, and hands back detached
rows (the session maker is built with ``expire_on_commit=False``). Database
failures surface as ``BackendError`` after the session is rolled back.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Type
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.converters import sku_key
from core.errors import BackendError
from .database import Base, utcnow
from .product import Product
from .users import User, UserProfile


def _describe(e: SQLAlchemyError) -> str:
    orig = getattr(e, "orig", None)
    return str(orig or e).strip() or e.__class__.__name__


class PersistenceGateway:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_maker() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                await db.rollback()
                raise BackendError(_describe(e)) from e

    async def list_rows(
        self,
        model: Type[Base],
        *,
        order_by: str = "created_at",
        descending: bool = False,
        **filters: Any,
    ) -> List[Any]:
        stmt = select(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        order_col = getattr(model, order_by)
        stmt = stmt.order_by(order_col.desc() if descending else order_col.asc())
        async with self.session() as db:
            res = await db.execute(stmt)
            return list(res.scalars().all())

    async def get(self, model: Type[Base], row_id: UUID) -> Optional[Any]:
        async with self.session() as db:
            return await db.get(model, row_id)

    async def find_one(self, model: Type[Base], **filters: Any) -> Optional[Any]:
        stmt = select(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        async with self.session() as db:
            res = await db.execute(stmt.limit(1))
            return res.scalars().first()

    async def insert(self, model: Type[Base], **values: Any) -> Any:
        row = model(**values)
        async with self.session() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return row

    async def update(
        self,
        model: Type[Base],
        row_id: UUID,
        *,
        expected: Optional[Dict[str, Any]] = None,
        **values: Any,
    ) -> Optional[Any]:
        """Update one row and return it re-read, or None when nothing matched.

        ``expected`` adds equality conditions, so the write only lands when
        the row still holds the values the caller decided on.
        """
        stmt = update(model).where(model.id == row_id)
        for column, value in (expected or {}).items():
            stmt = stmt.where(getattr(model, column) == value)
        return await self._update_one(model, row_id, stmt.values(**values))

    async def delete(self, model: Type[Base], row_id: UUID) -> bool:
        async with self.session() as db:
            res = await db.execute(delete(model).where(model.id == row_id))
            await db.commit()
            return bool(res.rowcount)

    async def delete_all(self, model: Type[Base]) -> int:
        async with self.session() as db:
            res = await db.execute(delete(model))
            await db.commit()
            return int(res.rowcount or 0)

    # Product quantities

    async def find_product_by_sku(self, sku: str) -> Optional[Product]:
        stmt = (
            select(Product)
            .where(Product.sku_key == sku_key(sku))
            .order_by(Product.created_at.asc())
            .limit(1)
        )
        async with self.session() as db:
            res = await db.execute(stmt)
            return res.scalars().first()

    async def increment_quantity(self, product_id: UUID, delta: int, **values: Any) -> Optional[Product]:
        """quantity += delta in one statement; refuses to go below zero."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .where(Product.quantity + delta >= 0)
            .values(quantity=Product.quantity + delta, updated_at=utcnow(), **values)
        )
        return await self._update_one(Product, product_id, stmt)

    async def decrement_if_available(self, product_id: UUID, quantity: int) -> Optional[Product]:
        """quantity -= n only while quantity >= n, decided by the database."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .where(Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity, updated_at=utcnow())
        )
        return await self._update_one(Product, product_id, stmt)

    # Profiles

    async def set_profile_role(self, profile_id: UUID, role: str, city: Optional[str]) -> Optional[UserProfile]:
        """Role on the profile and the admin flag on its account, committed together."""
        async with self.session() as db:
            profile = await db.get(UserProfile, profile_id)
            if profile is None:
                return None
            profile.role = role
            profile.city = city
            account = await db.get(User, profile.auth_user_id)
            if account is not None:
                account.is_superuser = role == "admin"
            await db.commit()
            return profile

    async def _update_one(self, model: Type[Base], row_id: UUID, stmt) -> Optional[Any]:
        async with self.session() as db:
            res = await db.execute(stmt.execution_options(synchronize_session=False))
            if not res.rowcount:
                await db.rollback()
                return None
            await db.commit()
            return await db.get(model, row_id)
