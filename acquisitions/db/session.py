"""
Process-wide async engine and the session factory behind ``get_db``.

Production talks to PostgreSQL through asyncpg and gets a sized pool.
Any other URL (the test suite runs on ``sqlite+aiosqlite``) keeps the
dialect's default pool; tests swap sessions in through
``dependency_overrides[get_db]`` instead of touching this engine.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from acquisitions.core.config import settings


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        # recycle below typical proxy idle timeouts
        options.update(pool_size=20, max_overflow=10, pool_recycle=300)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Rows stay readable after commit; the endpoints serialise them post-commit.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
