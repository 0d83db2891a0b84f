from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from siply.config import settings
# Register the tables on SQLModel.metadata
from siply.models import HydrationDay, HydrationProfile  # noqa: F401


def build_engine(database_url: str) -> AsyncEngine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(database_url, echo=False, future=True)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(settings.database_url)
async_session_factory = build_session_factory(engine)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()


async def init_db(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
