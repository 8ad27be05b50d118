from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from core.config import settings


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    # An in-memory SQLite database only exists on one connection, so share it.
    if url.startswith("sqlite") and (":memory:" in url or url.endswith("://")):
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo)


engine = make_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


def _import_models() -> None:
    # Registers every table on Base.metadata
    from db import image, product, request, setting, users  # noqa: F401


async def create_db_and_tables(target: Optional[AsyncEngine] = None):
    _import_models()
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.ctx.session_maker() as session:
        yield session
