import os
import tempfile
from collections.abc import AsyncGenerator, Callable

# settings are read at import time: point them at a throwaway database first
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.mkdtemp(), "stockchef.db")
os.environ["RATE_LIMIT_TEST_MODE"] = "true"
os.environ["OPENAI_API_KEY"] = ""
os.environ["REDIS_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from stockchef.db.session import build_engine, get_session, init_models
from stockchef.main import app
from stockchef.services import stock_service


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh file-backed SQLite database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_stock(session_factory) -> Callable:
    """Return an async helper that stores ``{name: quantity}`` for a user."""

    async def _seed(user_id: int, items: dict[str, float]) -> None:
        async with session_factory() as session:
            await stock_service.save_ingredients(session, user_id, list(items.items()))

    return _seed


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Yield an HTTPX async test client bound to the test database."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def logged_in_client(async_client: AsyncClient) -> AsyncClient:
    """Client with a signed-up, logged-in user."""
    credentials = {"email": "cook@example.com", "password": "secret123"}
    response = await async_client.post("/api/v1/auth/signup", json={**credentials, "username": "cook"})
    assert response.status_code == 200
    response = await async_client.post("/api/v1/auth/login", json=credentials)
    assert response.status_code == 200
    return async_client
