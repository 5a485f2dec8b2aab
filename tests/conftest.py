"""Shared fixtures for the FileBox test suite.

Settings are read at import time, so the environment is prepared before any
``filebox`` module is imported. Every test gets its own SQLite file and blob
directory under ``tmp_path``.
"""
import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="filebox-tests-")
os.environ["JWT_SECRET_KEY"] = "filebox-test-secret-key-0123456789abcdef0123456789"
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = os.path.join(_TEST_DIR, "storage")
os.environ["CLEANUP_INTERVAL_SECONDS"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from filebox.core.database import Base, get_db
from filebox.core.storage import LocalBlobStore, get_blob_store
from filebox.main import app
from filebox.models.user import User
from filebox.services.auth import AuthService

DEFAULT_PASSWORD = "abc12345"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'filebox.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(
        base_path=str(tmp_path / "blobs"),
        timeout=5,
        retry_attempts=2,
        retry_backoff=0,
    )


async def create_user(session_factory, email: str, password: str = DEFAULT_PASSWORD,
                      username: str = None, is_admin: bool = False) -> User:
    """Insert a user in its own session and return it detached"""
    async with session_factory() as session:
        user = await AuthService(session).create_user(email, password, username, is_admin=is_admin)
        await session.commit()
        return user


@pytest.fixture
def make_user(session_factory):
    async def _make_user(email: str, password: str = DEFAULT_PASSWORD, username: str = None,
                         is_admin: bool = False) -> User:
        return await create_user(session_factory, email, password, username, is_admin)
    return _make_user


@pytest.fixture
async def owner(session_factory):
    return await create_user(session_factory, "owner@example.com", username="owner")


@pytest.fixture
async def other_user(session_factory):
    return await create_user(session_factory, "other@example.com", username="other")


@pytest.fixture
async def admin(session_factory):
    return await create_user(session_factory, "admin@example.com", username="admin", is_admin=True)


@pytest.fixture
async def client(session_factory, blob_store):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_blob_store():
        return blob_store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = override_get_blob_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
