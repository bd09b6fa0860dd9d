"""Async database engine, session factory and dialect helpers."""

from typing import Any, AsyncGenerator

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fitsquad.core.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base for all models."""


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    async with async_session_maker() as session:
        yield session


def upsert_insert(session: AsyncSession, model: Any):
    """Return a dialect-specific INSERT supporting ON CONFLICT clauses.

    PostgreSQL runs in production and SQLite in tests; both dialects expose
    ``on_conflict_do_nothing`` / ``on_conflict_do_update`` on their own
    ``insert`` constructs.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
