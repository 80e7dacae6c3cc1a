from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, AsyncGenerator, Optional
from unittest.mock import AsyncMock

if TYPE_CHECKING:
    from leadcrm.core.cache import TimeslotCache

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leadcrm.core.database import get_db
from leadcrm.dependencies import get_redis_client
from leadcrm.main import app
from leadcrm.models import (
    AutoAssignmentSettings,
    Base,
    Borrower,
    CheckedInAgent,
    Lead,
    Timeslot,
    User,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 10:00 on 2025-03-10 business time (UTC+8)
FIXED_NOW = datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)
BUSINESS_DAY = date(2025, 3, 10)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory schema per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


class Seeder:
    """Inserts committed rows for a test."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _save(self, row):
        self.session.add(row)
        await self.session.commit()
        return row

    async def user(self, user_id: str = "agent-1", full_name: Optional[str] = None) -> User:
        return await self._save(
            User(id=user_id, full_name=full_name or user_id.title(), role="agent")
        )

    async def lead(
        self,
        full_name: str = "Tan Ah Kow",
        phone_number: str = "+6591234567",
        status: str = "new",
        assigned_to: Optional[str] = None,
        **extra,
    ) -> Lead:
        return await self._save(
            Lead(
                full_name=full_name,
                phone_number=phone_number,
                status=status,
                assigned_to=assigned_to,
                **extra,
            )
        )

    async def borrower(self, full_name: str = "Lim Mei Ling", status: str = "new", **extra) -> Borrower:
        return await self._save(
            Borrower(full_name=full_name, phone_number="+6598765432", status=status, **extra)
        )

    async def timeslot(
        self,
        day: date = BUSINESS_DAY,
        start: time = time(10, 0),
        end: time = time(10, 30),
        max_capacity: int = 1,
        occupied_count: int = 0,
        is_disabled: bool = False,
    ) -> Timeslot:
        return await self._save(
            Timeslot(
                date=day,
                start_time=start,
                end_time=end,
                max_capacity=max_capacity,
                occupied_count=occupied_count,
                is_disabled=is_disabled,
            )
        )

    async def check_in(
        self,
        agent_id: str,
        lead_capacity: int = 10,
        current_lead_count: int = 0,
        weight: int = 1,
        day: date = BUSINESS_DAY,
    ) -> CheckedInAgent:
        return await self._save(
            CheckedInAgent(
                agent_id=agent_id,
                checked_in_date=day,
                lead_capacity=lead_capacity,
                current_lead_count=current_lead_count,
                weight=weight,
                is_active=True,
            )
        )

    async def assignment_settings(
        self,
        is_enabled: bool = True,
        assignment_method: str = "round_robin",
        current_round_robin_index: int = 0,
        max_leads_per_agent_per_day: int = 20,
    ) -> AutoAssignmentSettings:
        return await self._save(
            AutoAssignmentSettings(
                is_enabled=is_enabled,
                assignment_method=assignment_method,
                current_round_robin_index=current_round_robin_index,
                max_leads_per_agent_per_day=max_leads_per_agent_per_day,
            )
        )


@pytest.fixture
def clock():
    """Frozen clock for services that take ``clock=``."""
    return fixed_clock


@pytest.fixture
def business_day() -> date:
    return BUSINESS_DAY


@pytest.fixture
def seed(db_session) -> Seeder:
    return Seeder(db_session)


@pytest_asyncio.fixture
async def async_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app and test DB."""

    async def override_get_db():
        yield db_session

    async def override_get_redis_client():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = override_get_redis_client
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "TimeslotCache":
    """Return a ``TimeslotCache`` backed by the mock Redis client."""
    from leadcrm.core.cache import TimeslotCache

    return TimeslotCache(redis_client=mock_redis)
