"""Shared fixtures: in-memory database, local storage and an ASGI client."""

import os
import tempfile

os.environ["AUTH_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = tempfile.mkdtemp(prefix="aether-tests-")

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aether.ai.llm import ResponseGenerator
from aether.ai.vision import VisionSummarizer
from aether.api.dependencies import get_chat_service
from aether.db import models  # noqa: F401
from aether.db.base import Base, get_db
from aether.repository import chat_repository
from aether.services.chat_service import ChatService
from aether.services.file_storage import FileStorageService, get_file_storage


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return FileStorageService(backend="local", local_root=str(tmp_path / "uploads"))


@pytest.fixture
def summarizer():
    mock = MagicMock(spec=VisionSummarizer)
    mock.describe_image = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def generator():
    mock = MagicMock(spec=ResponseGenerator)
    mock.generate_reply = AsyncMock(return_value="Build a three-month emergency fund first.")
    mock.generate_title = AsyncMock(return_value="Savings plan")
    return mock


@pytest.fixture
def chat_service(storage, summarizer, generator):
    return ChatService(
        repository=chat_repository,
        storage=storage,
        summarizer=summarizer,
        generator=generator,
    )


@pytest_asyncio.fixture
async def client(session_maker, storage, chat_service):
    """HTTP client bound to the app with test database, storage and AI doubles."""
    from aether.main import app

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    app.dependency_overrides[get_chat_service] = lambda: chat_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
