import json
import asyncpg
from typing import AsyncGenerator
from fastapi import Request
from .config import settings

async def _init_connection(conn: asyncpg.Connection) -> None:
    # Journal metadata is read and written as plain dicts
    await conn.set_type_codec(
        "jsonb",
        encoder=lambda v: json.dumps(v, default=str),
        decoder=json.loads,
        schema="pg_catalog",
    )

async def create_pool() -> asyncpg.Pool:
    return await asyncpg.create_pool(
        user=settings.database_username,
        password=settings.database_password,
        database=settings.database_name,
        host=settings.database_hostname,
        port=settings.database_port,
        min_size=settings.database_pool_min_size,
        max_size=settings.database_pool_max_size,
        init=_init_connection,
    )

async def get_db(request: Request) -> AsyncGenerator[asyncpg.Connection, None]:
    """One pooled connection per request; the pool is owned by the app lifespan."""
    async with request.app.state.pool.acquire() as conn:
        yield conn
