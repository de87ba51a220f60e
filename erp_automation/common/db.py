from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

_engine_cache: dict[str, AsyncEngine] = {}
_session_factory_cache: dict[str, async_sessionmaker[AsyncSession]] = {}


def _ensure_async_engine(database_url: str) -> AsyncEngine:
    if database_url not in _engine_cache:
        _engine_cache[database_url] = create_async_engine(database_url, future=True)
    return _engine_cache[database_url]


def _ensure_sessionmaker(database_url: str) -> async_sessionmaker[AsyncSession]:
    if database_url not in _session_factory_cache:
        engine = _ensure_async_engine(database_url)
        _session_factory_cache[database_url] = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory_cache[database_url]


def get_engine(database_url: str) -> AsyncEngine:
    return _ensure_async_engine(database_url)


@asynccontextmanager
async def session_scope(database_url: str) -> AsyncIterator[AsyncSession]:
    factory = _ensure_sessionmaker(database_url)
    async with factory() as session:
        yield session


async def dispose_engines() -> None:
    for engine in list(_engine_cache.values()):
        await engine.dispose()
    _engine_cache.clear()
    _session_factory_cache.clear()


def run_alembic_upgrade(*, revision: str, database_url: str, alembic_config_path: str) -> None:
    alembic_cfg = Config(alembic_config_path)
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, revision)
