from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from marketplace.core.config import Settings

log = logging.getLogger(__name__)


def _engine_kwargs(cfg: Settings) -> dict:
    kwargs: dict = {"pool_pre_ping": True}
    if cfg.database_url.startswith("postgresql+asyncpg"):
        kwargs.update(
            pool_size=cfg.db_pool_size,
            connect_args={
                "timeout": cfg.db_connect_timeout_seconds,
                "command_timeout": cfg.db_command_timeout_seconds,
            },
        )
    return kwargs


class Database:
    """
    Process-wide connection pool handle.

    Created once at startup (see main.lifespan), reused by every request through
    get_db, and disposed on shutdown. Nothing else holds an engine.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_settings(cls, cfg: Settings) -> "Database":
        return cls(cfg.database_url, **_engine_kwargs(cfg))

    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    async def dispose(self) -> None:
        log.info("disposing database engine")
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
