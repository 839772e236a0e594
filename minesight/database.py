"""
Relational store: async engine, session factory and FastAPI dependency.

The violations recorder opens its own short sessions next to the request
session, so SQLite connections wait on locks instead of failing at once.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from minesight.config import settings


class Base(DeclarativeBase):
    """Declarative base for the videos, violations and models tables."""
    pass


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"timeout": 30}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    connect_args=_connect_args(settings.DATABASE_URL),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db():
    """Create missing tables."""
    # Register models with Base
    from minesight.models import video, violation, training_asset  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    """Close pooled connections."""
    await engine.dispose()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; committed on success, rolled back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
