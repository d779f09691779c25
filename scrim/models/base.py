"""Engine, session factory and declarative base for the scrim models."""
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


engine = create_async_engine(config.DATABASE_URL)

# Objects stay readable after commit; services flush explicitly when they need ids
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create missing tables on ``bind`` (the configured engine by default)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
