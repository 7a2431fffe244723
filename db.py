from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Result, CursorResult
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine

import config
from models.base import Base
"""
Imports of these models are needed to correctly create tables in the database.
For more information see https://stackoverflow.com/questions/7478403/sqlalchemy-classes-across-files
"""
from models.document import Document

# SQLAlchemy logging configuration
# HARD DISABLE SQL echo - SQL loggers are silenced in utils/logging_config.py
sql_echo = False

url = make_url(config.DB_URL)
if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
    # File-based SQLite needs its folder to exist before the first connect
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(config.DB_URL, echo=sql_echo)
session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_db_session(factory: async_sessionmaker | None = None) -> AsyncSession:
    session = None
    try:
        async with (factory or session_maker)() as async_session:
            session = async_session
            yield session
    finally:
        if session is not None:
            await session.close()


async def session_execute(stmt, session: AsyncSession) -> Result[Any] | CursorResult[Any]:
    query_result = await session.execute(stmt)
    return query_result


async def session_flush(session: AsyncSession) -> None:
    await session.flush()


async def session_commit(session: AsyncSession) -> None:
    await session.commit()


async def session_rollback(session: AsyncSession) -> None:
    await session.rollback()


async def create_db_and_tables(target_engine: AsyncEngine | None = None) -> None:
    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
