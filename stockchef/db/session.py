from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stockchef.core.config import get_settings
from stockchef.db.base import Base

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool options suited to the backend."""
    options: dict[str, Any] = {"future": True, "echo": echo}
    if database_url.startswith("sqlite"):
        # file-backed sqlite: one connection per session so version checks see committed rows
        options["poolclass"] = NullPool
    else:
        options.update(
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


engine: AsyncEngine = build_engine(str(settings.database_url), echo=settings.app_env == "local")

SessionLocal = async_sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request scope injections."""
    async with SessionLocal() as session:
        yield session


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create all tables from the ORM metadata (local runs and tests)."""
    from stockchef.db import models  # noqa: F401 - register models on the metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
