"""
Pytest configuration and shared fixtures for backend tests.

This module provides test fixtures for database sessions, scripted completion
and embedding services, agent contexts, and an API test client.
"""

import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import models  # noqa: F401,E402  (registers tables on Base.metadata)
from database import Base, get_db  # noqa: E402
from domain.contexts import AgentContext, LoadedTool  # noqa: E402
from llm.completion import CompletionResult  # noqa: E402
from main import app  # noqa: E402

TEST_USER = "user-1"


class FakeCompletionService:
    """
    CompletionService double that replays scripted results in order.

    Items may be strings (plain content), CompletionResult instances, or
    exceptions to raise. Once the script runs out, default_content is returned.
    """

    def __init__(self, responses: Optional[List] = None, default_content: str = "ok"):
        self.responses = list(responses or [])
        self.default_content = default_content
        self.calls: List[Dict] = []

    async def complete(self, messages, options, tools=None):
        self.calls.append({"messages": list(messages), "options": options, "tools": tools})
        if not self.responses:
            return CompletionResult(content=self.default_content)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return CompletionResult(content=item)
        return item


class FakeEmbeddingService:
    """EmbeddingService double with fixed vectors per text."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 3, fail: bool = False):
        self.model = "fake-embedding"
        self.dimension = dimension
        self.vectors = dict(vectors or {})
        self.fail = fail
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding provider down")
        return self.vectors.get(text, [1.0] + [0.0] * (self.dimension - 1))


def make_tool(name: str, toolkit: str, result=None, description: Optional[str] = None) -> LoadedTool:
    """Build a LoadedTool whose execute returns result (or raises it if it is an exception)."""
    calls = []

    async def execute(arguments):
        calls.append(arguments)
        if isinstance(result, Exception):
            raise result
        return result

    tool = LoadedTool(name=name, description=description or f"{name} tool", toolkit=toolkit, execute=execute)
    tool.calls = calls
    return tool


def make_context(tools=(), memory=None, user_id: str = TEST_USER) -> AgentContext:
    return AgentContext(user_id=user_id, conversation_id="conv-1", tools=tuple(tools), memory=memory)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """In-memory SQLite shared across sessions of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def completion_service() -> FakeCompletionService:
    return FakeCompletionService()


@pytest.fixture
def embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up environment variables for testing."""
    from core import reset_settings

    monkeypatch.setenv("ENABLE_SCHEDULER", "false")
    monkeypatch.setenv("USER_ID_HEADER", "X-User-Id")

    # Reset settings cache so new env vars are picked up
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
async def client(
    session_factory, completion_service, embedding_service, mock_env_vars
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with the service graph wired to test doubles.

    The lifespan is not run; services are placed on app.state directly and
    the database dependency is overridden with the in-memory session factory.
    """
    from core import get_settings
    from core.app_factory import build_services

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    services = build_services(
        get_settings(),
        session_factory=session_factory,
        completion_service=completion_service,
        embedding_service=embedding_service,
    )
    for name, service in services.items():
        setattr(app.state, name, service)

    # Create test client
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-User-Id": TEST_USER}) as ac:
        yield ac

    # Clean up
    app.dependency_overrides.clear()
    for name in services:
        if hasattr(app.state, name):
            delattr(app.state, name)
