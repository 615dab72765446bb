"""
Shared fixtures for SmartDocsAI backend and editor tests.

The API runs against a throwaway SQLite database (aiosqlite) unless
TEST_DATABASE_URL points elsewhere.  Each test function gets fresh tables:
they are created before the test and dropped after it.  The Gemini service
is replaced by ``FakeGenerationService`` through a dependency override.
"""
from __future__ import annotations

import os
import tempfile
from typing import AsyncGenerator, List, Optional, Tuple

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
if "TEST_DATABASE_URL" not in os.environ:
    _db_dir = tempfile.mkdtemp(prefix="smartdocs-test-")
    os.environ["TEST_DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
TEST_DATABASE_URL = os.environ["TEST_DATABASE_URL"]
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GEMINI_API_KEY"] = ""

from app.database import Base, get_db  # noqa: E402
from app.errors import VendorError  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.services.generation import get_generation_service  # noqa: E402


class FakeGenerationService:
    """Stands in for GeminiGenerationService; records prompts it receives."""

    is_configured = True

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.content = "<p>Generated text</p>"
        self.error: Optional[VendorError] = None

    async def generate(self, prompt: str, current_content: str = "") -> str:
        self.calls.append((prompt, current_content))
        if self.error is not None:
            raise self.error
        return self.content


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test. After the test, all tables are dropped
    so each test starts with a clean slate.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def fake_ai() -> FakeGenerationService:
    return FakeGenerationService()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, fake_ai: FakeGenerationService
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session and the AI service faked.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_generation_service] = lambda: fake_ai

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def signup(
    client: AsyncClient,
    email: str = "ada@example.com",
    name: str = "Ada",
    password: str = "s3cret-pass",
) -> dict:
    """Create an account and return Authorization headers for it."""
    resp = await client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient) -> dict:
    return await signup(client)
