"""Shared fixtures for the maintenance tests.

Repositories and services run against an in-memory SQLite database via
aiosqlite, so no MySQL instance is needed.
"""

import os
from datetime import datetime
from decimal import Decimal

# Point the settings at SQLite before application modules are imported.
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import components.core.init_db  # noqa: F401  registers all models
from components.core.clock import FixedClock
from components.core.database import Base
from components.plan.models import MaintenancePlan

ACCOUNT_ID = 7
NOW = datetime(2025, 5, 20, 10, 0)


@pytest_asyncio.fixture
async def session_factory():
    """Provide a session factory backed by an in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def make_plan(async_session):
    """Insert a maintenance plan with sensible defaults."""

    async def _make_plan(**overrides) -> MaintenancePlan:
        values = {
            "account_id": ACCOUNT_ID,
            "client_id": 42,
            "title": "Front garden",
            "preferred_weekday": 1,
            "preferred_week_of_month": 2,
            "default_labor_cost": Decimal("150.00"),
            "materials_markup_pct": Decimal("10"),
            "status": "active",
            "created_at": datetime(2025, 1, 1),
        }
        values.update(overrides)
        plan = MaintenancePlan(**values)
        async_session.add(plan)
        await async_session.commit()
        await async_session.refresh(plan)
        return plan

    return _make_plan
