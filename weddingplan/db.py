"""
Shared asyncpg pool.

Every tenant query in the app goes through this pool. Sessions run in UTC so
date comparisons (due dates, wedding dates) are not shifted by server locale.
"""
import asyncpg
from .config import settings

_pool: asyncpg.Pool | None = None

async def init_db_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is not set")
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=30,
            server_settings={
                "application_name": settings.service_name,
                "timezone": "UTC",
            },
        )
    return _pool

async def close_db_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None

async def get_pool() -> asyncpg.Pool:
    if _pool is None:
        return await init_db_pool()
    return _pool
