from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
import json
from typing import Annotated, Any

from app.config import settings

from fastapi import Depends
from pydantic import BaseModel
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession


def json_serializer(value):
    if isinstance(value, BaseModel | SQLModel):
        return value.model_dump_json()
    elif isinstance(value, datetime):
        return value.isoformat()
    return json.dumps(value)


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"json_serializer": json_serializer, "pool_pre_ping": True}
    if url.startswith("mysql"):
        options.update(
            pool_size=20,
            max_overflow=30,
            pool_timeout=settings.db_pool_timeout_seconds,
            pool_recycle=3600,
            connect_args={"connect_timeout": settings.db_connect_timeout_seconds},
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Redis connection
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=True,
    db=0,
    socket_timeout=settings.db_pool_timeout_seconds,
    socket_connect_timeout=settings.db_connect_timeout_seconds,
)


# Database dependency
db_session_context: ContextVar[AsyncSession | None] = ContextVar("db_session_context", default=None)


async def get_db():
    session = db_session_context.get()
    if session is None:
        session = AsyncSession(engine, expire_on_commit=False)
        db_session_context.set(session)
        try:
            yield session
        finally:
            await session.close()
            db_session_context.set(None)
    else:
        yield session


@asynccontextmanager
async def with_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables() -> None:
    """Create missing tables. Migrations remain the source of truth in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


Database = Annotated[AsyncSession, Depends(get_db)]


def get_redis():
    return redis_client


Redis = Annotated[redis.Redis, Depends(get_redis)]
