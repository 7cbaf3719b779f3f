"""
Pytest fixtures for Rovel tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test config is set before importing rovel modules.
os.environ.setdefault("ROVEL_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("ROVEL_ENV", "development")

from rovel.config import Environment, Settings
from rovel.container import build_services
from rovel.db.base import Base, Database
from rovel.observability.metrics import metrics
from rovel.tasks import TaskScheduler

ADMIN_KEY = "test-admin-key"
START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _ensure_test_database_url(database_url: str) -> None:
    if database_url.startswith("postgresql") and "test" not in database_url:
        raise RuntimeError(
            "Refusing to run Rovel tests against a non-test database. "
            "Set ROVEL_TEST_DATABASE_URL to a dedicated test database."
        )


class FakeClock:
    """Manually advanced clock for lease expiry tests."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway store (SQLite unless overridden)."""
    database_url = os.getenv(
        "ROVEL_TEST_DATABASE_URL",
        f"sqlite+aiosqlite:///{tmp_path / 'rovel_test.db'}",
    )
    _ensure_test_database_url(database_url)
    return Settings(
        env=Environment.DEVELOPMENT,
        database_url=database_url,
        admin_api_key=ADMIN_KEY,
        allow_insecure_dev=False,
        store_connect_max_attempts=1,
        store_connect_retry_delay_seconds=0.0,
        scheduler_drain_timeout_seconds=1.0,
    )


@pytest.fixture
async def database(test_settings):
    """Connected store with a fresh schema per test."""
    db = Database(test_settings.database_url)
    await db.connect()
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
async def scheduler():
    scheduler = TaskScheduler(drain_timeout_seconds=1.0)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def services(test_settings, database, scheduler, clock):
    return build_services(test_settings, database=database, scheduler=scheduler, clock=clock)


@pytest.fixture
async def client(test_settings, services):
    """Async test client around an app wired to the test services."""
    from rovel.main import create_app

    app = create_app(test_settings, services=services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_KEY}"}
