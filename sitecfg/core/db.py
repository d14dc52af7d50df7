import asyncio
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Basic logging setup
import sitecfg.core.logging_config  # noqa: F401  Centralized logging
from sitecfg.core.config import settings
from sitecfg.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Import models to register them with SQLModel.metadata
import sitecfg.models  # noqa: F401, E402

DATABASE_URL = settings.DATABASE_URL


def enable_sqlite_savepoints(engine: AsyncEngine) -> AsyncEngine:
    """
    pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT handling.
    Take over transaction control so begin_nested() works like on PostgreSQL.
    """
    if engine.dialect.name != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str) -> AsyncEngine:
    return enable_sqlite_savepoints(create_async_engine(url, echo=False, future=True))


engine = build_engine(DATABASE_URL)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(max_retries: int = 10, retry_interval: float = 2):
    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            # Seed the master scope so fresh tenants have something to copy
            from sitecfg.core.tenants import seed_master_settings

            await seed_master_settings(AsyncSessionLocal)
            logger.info("Database initialized successfully.")
            return
        except Exception as e:
            logger.warning(f"Database connection failed (attempt {attempt + 1}/{max_retries}): {e}")
            await asyncio.sleep(retry_interval)

    logger.error("Could not connect to database after maximum retries.")
    raise StoreUnavailable("Database connection failed")

