"""
Pytest configuration and fixtures for testing
"""
import os

# Settings are read at import time; configure the environment first
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest-only"
os.environ["ENV"] = "development"
os.environ["API_RATE_LIMIT"] = "100000"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("REDIS_URL", None)

import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from auth_utils import create_jwt, hash_password
from config.settings import PLAN_FREE_TRIAL, STATUS_TRIAL
from crud.user import UserRepository
from database import Base, get_db
from dependencies import (
    get_generation_service,
    get_ledger_stats,
    get_login_rate_limiter,
    get_tool_rate_limiter,
)
from services.generation_service import GenerationService
from services.usage_ledger import LedgerStats
from utils.rate_limit import InMemoryRateLimiter

TEST_PASSWORD = "Str0ng!Passw0rd"


def _make_engine(tmp_path):
    # File-backed SQLite without pooling, so connections are never shared across event loops
    return create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, poolclass=NullPool)


def _make_session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def _create_tables(engine):
    import database_models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def insert_user(session: AsyncSession, email: str = "jane@example.com", **fields):
    """
    Create a user directly in the database, on a 7-day trial unless
    ``fields`` overrides the subscription.
    """
    now = datetime.utcnow()
    user_repo = UserRepository(session)
    user = await user_repo.create_user({
        "email": email,
        "hashed_password": hash_password(fields.pop("password", TEST_PASSWORD)),
        "first_name": fields.pop("first_name", "Jane"),
        "last_name": fields.pop("last_name", "Doe"),
        "phone": fields.pop("phone", None),
        "role": fields.pop("role", "user"),
    })
    updates = {
        "plan": PLAN_FREE_TRIAL,
        "subscription_status": STATUS_TRIAL,
        "trial_start_date": now,
        "trial_end_date": now + timedelta(days=7),
    }
    updates.update(fields)
    return await user_repo.update_user(user, updates)


@pytest.fixture
async def test_db(tmp_path):
    """
    Fixture that provides an isolated SQLite database session for each test.

    This fixture:
    - Creates all tables before the test runs
    - Yields a clean AsyncSession for the test
    - Disposes of the engine after the test completes
    """
    engine = _make_engine(tmp_path)
    await _create_tables(engine)

    async with _make_session_factory(engine)() as session:
        try:
            yield session
        finally:
            await session.close()

    await engine.dispose()


@pytest.fixture
def user_factory(test_db):
    """Async callable inserting and committing a user in ``test_db``."""
    async def _create(email: str = "jane@example.com", **fields):
        user = await insert_user(test_db, email, **fields)
        await test_db.commit()
        return user
    return _create


class GenerationStub(GenerationService):
    """Generation service whose routine can be swapped per test."""

    def __init__(self, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds=timeout_seconds)
        self.routine = None
        self.calls = 0

    async def _run(self, tool, payload):
        self.calls += 1
        if self.routine is not None:
            return await self.routine(tool, payload)
        return await super()._run(tool, payload)


@pytest.fixture
def api(tmp_path):
    """
    FastAPI TestClient wired to a fresh database, fresh limiters, a fresh
    ledger failure counter and a stubbed generation service.
    """
    from main import app

    engine = _make_engine(tmp_path)
    session_factory = _make_session_factory(engine)
    asyncio.run(_create_tables(engine))

    # Override get_db dependency to use test database
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    env = SimpleNamespace(
        tool_limiter=InMemoryRateLimiter(10, 60),
        login_limiter=InMemoryRateLimiter(5, 900),
        generator=GenerationStub(),
        ledger_stats=LedgerStats(),
        session_factory=session_factory,
    )

    def run_db(fn):
        """Run ``await fn(session)`` in its own committed session."""
        async def _inner():
            async with session_factory() as session:
                result = await fn(session)
                await session.commit()
                return result
        return asyncio.run(_inner())

    def make_user(email: str = "jane@example.com", **fields):
        """Insert a user and return ``(user_id, auth_headers)``."""
        user = run_db(lambda session: insert_user(session, email, **fields))
        return user.id, {"Authorization": f"Bearer {create_jwt(user.id, user.role)}"}

    env.run_db = run_db
    env.make_user = make_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tool_rate_limiter] = lambda: env.tool_limiter
    app.dependency_overrides[get_login_rate_limiter] = lambda: env.login_limiter
    app.dependency_overrides[get_generation_service] = lambda: env.generator
    app.dependency_overrides[get_ledger_stats] = lambda: env.ledger_stats

    env.client = TestClient(app)

    yield env

    # Cleanup: remove dependency overrides
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())
