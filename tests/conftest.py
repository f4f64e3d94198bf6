"""Shared test fixtures.

Every test that touches the database gets its own in-memory SQLite database.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession

os.environ["FINALEXAM_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["FINALEXAM_JWT_SECRET"] = "test-secret-0123456789abcdef0123456789abcdef"
os.environ["FINALEXAM_RATE_LIMIT_BACKEND"] = "memory"
os.environ["FINALEXAM_LOG_FORMAT"] = "console"
os.environ["FINALEXAM_LOG_LEVEL"] = "WARNING"

from finalexam.auth.rate_limit import InMemoryRateLimiter  # noqa: E402
from finalexam.config import get_settings  # noqa: E402
from finalexam.database import close_db, create_tables, get_session, init_db  # noqa: E402
from finalexam.main import create_app  # noqa: E402

get_settings.cache_clear()

# Far below production strength; hashing cost is not under test in API tests
FAST_PBKDF2_ITERATIONS = 1_000

PASSWORD = "password123"


@pytest.fixture
def fast_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("finalexam.auth.password.PBKDF2_ITERATIONS", FAST_PBKDF2_ITERATIONS)


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema in a fresh in-memory database."""
    await init_db(get_settings().database_url)
    await create_tables()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for service tests and assertions."""
    sessions = get_session()
    session = await sessions.__anext__()
    yield session
    await sessions.aclose()


@pytest_asyncio.fixture
async def client(database: None, fast_hashing: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app.

    ASGITransport does not run the lifespan, so the pieces it would set up are wired here.
    """
    app = create_app()
    app.state.rate_limiter = InMemoryRateLimiter()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def call(
    client: AsyncClient,
    action: str,
    data: dict[str, Any] | None = None,
    token: str | None = None,
    headers: dict[str, str] | None = None,
) -> Response:
    """POST one action to the dispatcher."""
    request_headers = dict(headers or {})
    if token is not None:
        request_headers["Authorization"] = f"Bearer {token}"
    return await client.post("/api/game", json={"action": action, "data": data or {}}, headers=request_headers)


async def register(client: AsyncClient, name: str, password: str = PASSWORD, **extra: Any) -> dict[str, Any]:
    """Register ``<name>@x.com`` / ``<name>``. Returns ``{"user": ..., "token": ...}``."""
    response = await call(
        client,
        "register",
        {"email": f"{name}@x.com", "username": name, "password": password, **extra},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest_asyncio.fixture
async def alice(client: AsyncClient) -> dict[str, Any]:
    return await register(client, "alice")


@pytest_asyncio.fixture
async def bob(client: AsyncClient) -> dict[str, Any]:
    return await register(client, "bob")
