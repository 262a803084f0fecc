from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from payu_bridge.utils.config import settings


class Base(DeclarativeBase):
    pass


def _to_async_database_url(url: str) -> str:
    if url.startswith("sqlite"):
        if "+aiosqlite" not in url:
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url
    if "+psycopg2" in url:
        return url.replace("+psycopg2", "+asyncpg")
    if "+psycopg" in url:
        return url.replace("+psycopg", "+asyncpg")
    if "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": False,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 1800,
        "connect_args": {"server_settings": {"timezone": settings.db_timezone}},
    }


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make SQLite take the write lock when a transaction begins.

    Deferred SQLite transactions that read and then write can fail with
    "database is locked" instead of waiting when two of them overlap.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for(url: str, **overrides: Any) -> AsyncEngine:
    async_url = _to_async_database_url(url)
    options = _engine_options(async_url)
    options.update(overrides)
    engine = create_async_engine(async_url, **options)
    if async_url.startswith("sqlite"):
        use_immediate_transactions(engine)
    return engine


engine: AsyncEngine = create_engine_for(settings.database_url)
SessionLocal = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)


async def ensure_tables_exist() -> None:
    # checkfirst=True is the default: creates only missing objects.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_connection() -> None:
    # Lightweight connectivity check used during app startup.
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as db:
        yield db
