"""
Shared test fixtures and configuration for the sitecfg test suite.
"""

# noqa: E402 (Standard for test configuration)
import os
import shutil
from typing import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

import tests.test_env_setup as env_setup  # noqa: F401
import sitecfg.core.db
from sitecfg.core.config import Settings
from sitecfg.core.db import enable_sqlite_savepoints
from sitecfg.core.mq import MemoryTranslationQueue
from sitecfg.core.service import SiteConfigService, set_service
from sitecfg.main import app as fastapi_app
from sitecfg.models.setting import SiteSetting
from tests.test_env_setup import TEST_DB_DIR, TEST_DB_PATH

# ============================================================================
# Database Fixtures
# ============================================================================


def _fresh_engine(**kwargs):
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    return enable_sqlite_savepoints(create_async_engine(f"sqlite+aiosqlite:///{TEST_DB_PATH}", echo=False, **kwargs))


@pytest.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide a file-based SQLite database for testing."""
    engine = _fresh_engine()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    # PATCH sitecfg.core.db so every component resolves the test engine
    original_engine = sitecfg.core.db.engine
    sitecfg.core.db.engine = engine
    original_sessionmaker = sitecfg.core.db.AsyncSessionLocal
    sitecfg.core.db.AsyncSessionLocal = async_session

    async with async_session() as session:
        yield session

    # Restore
    sitecfg.core.db.engine = original_engine
    sitecfg.core.db.AsyncSessionLocal = original_sessionmaker
    await engine.dispose()


@pytest.fixture
def session_factory(test_db: AsyncSession):
    return sitecfg.core.db.AsyncSessionLocal


async def add_setting(session: AsyncSession, key: str, value: str, tenant_id=None, theme_id=None, **extra) -> SiteSetting:
    row = SiteSetting(
        setting_key=key,
        setting_value=value,
        tenant_id=tenant_id,
        theme_id=theme_id,
        setting_category=extra.pop("category", "branding"),
        is_public=extra.pop("is_public", True),
        **extra,
    )
    session.add(row)
    # No refresh: a reading session would hold a SQLite lock until it ends
    await session.commit()
    return row


@pytest.fixture
def seed_setting(test_db: AsyncSession):
    """Insert a SiteSetting row directly, bypassing the mutator."""

    async def _seed(key: str, value: str, tenant_id=None, theme_id=None, **extra) -> SiteSetting:
        return await add_setting(test_db, key, value, tenant_id, theme_id, **extra)

    return _seed


# ============================================================================
# Translation Fixtures
# ============================================================================


class ReverseProvider:
    """Deterministic translator: reverses the text."""

    def __init__(self, fail_languages=(), fail_texts=()):
        self.fail_languages = set(fail_languages)
        self.fail_texts = set(fail_texts)
        self.calls = []

    async def translate(self, text: str, target_language: str, source_language: str) -> str:
        self.calls.append((text, target_language, source_language))
        if target_language in self.fail_languages or text in self.fail_texts:
            raise RuntimeError(f"provider down for {target_language}")
        return text[::-1]


@pytest.fixture
def reverse_provider() -> ReverseProvider:
    return ReverseProvider()


def make_test_config(**overrides) -> Settings:
    values = dict(
        TRANSLATION_WORKERS=1,
        TRANSLATION_MAX_ATTEMPTS=3,
        TRANSLATION_RETRY_BASE_DELAY=0.0,
        TRANSLATION_DLQ_RETRY_MINUTES=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def service(test_db: AsyncSession, reverse_provider: ReverseProvider) -> SiteConfigService:
    """Fully wired service on the test database with an in-memory queue."""
    return SiteConfigService(
        config=make_test_config(),
        provider=reverse_provider,
        queue=MemoryTranslationQueue(maxsize=100),
    )


@pytest.fixture
async def running_service(service: SiteConfigService):
    await service.start()
    yield service
    await service.stop()


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest.fixture
def api_client(mocker, reverse_provider: ReverseProvider) -> TestClient:
    """
    FastAPI test client. The client runs its own event loop, so it gets a
    NullPool engine that never shares connections with the pytest loop.
    """
    engine = _fresh_engine(poolclass=NullPool)
    mocker.patch.object(sitecfg.core.db, "engine", engine)
    mocker.patch.object(
        sitecfg.core.db, "AsyncSessionLocal", sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )

    set_service(
        SiteConfigService(
            config=make_test_config(),
            provider=reverse_provider,
            queue=MemoryTranslationQueue(maxsize=100),
        )
    )
    with TestClient(fastapi_app) as client:
        yield client
    set_service(None)

    # Cleanup database file after test
    if os.path.exists(TEST_DB_PATH):
        try:
            os.remove(TEST_DB_PATH)
        except PermissionError:
            pass


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def test_env():
    """Cleanup test directories after session."""
    yield
    if os.path.exists(TEST_DB_DIR):
        shutil.rmtree(TEST_DB_DIR, ignore_errors=True)
