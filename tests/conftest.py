"""
Pytest fixtures for the test database, client, principals and cache.

Every test gets its own SQLite file (aiosqlite), created from the ORM
metadata and disposed afterwards. Redis is disabled unless a test installs
the in-memory double from the `fake_redis` fixture.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.core.config import get_settings
from reservation_engine.core.security import Principal, create_access_token
from reservation_engine.db.base import Base
from reservation_engine.db.session import dispose_engine, get_engine, get_sessionmaker
from reservation_engine.infrastructure import redis_client
from reservation_engine.main import app
from reservation_engine.models import Event, Reservation, ReservationStatus, User, UserRole


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}"


@pytest_asyncio.fixture
async def session_factory(db_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Point the app at a fresh database, create tables, dispose afterwards."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()

    async with get_engine(db_url).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_sessionmaker(db_url)

    await dispose_engine(db_url)
    get_settings.cache_clear()


async def _create_user(factory, email: str, role: UserRole) -> Principal:
    async with factory() as session:
        user = User(email=email, role=role)
        session.add(user)
        await session.commit()
        return Principal(user_id=user.id, role=role)


@pytest.fixture
def make_user(session_factory):
    async def _make(email: str, role: UserRole = UserRole.USER) -> Principal:
        return await _create_user(session_factory, email, role)

    return _make


@pytest_asyncio.fixture
async def admin(session_factory) -> Principal:
    return await _create_user(session_factory, "admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def alice(session_factory) -> Principal:
    return await _create_user(session_factory, "alice@example.com", UserRole.USER)


@pytest_asyncio.fixture
async def bob(session_factory) -> Principal:
    return await _create_user(session_factory, "bob@example.com", UserRole.USER)


@pytest.fixture
def make_event(session_factory, admin):
    """Insert an event directly, bypassing validation (e.g. for past dates)."""

    async def _make(
        max_capacity: int = 10,
        available_spots: Optional[int] = None,
        days_ahead: int = 30,
        name: str = "Test Concert",
    ) -> Event:
        async with session_factory() as session:
            event = Event(
                name=name,
                description="A test event",
                event_date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
                location="Test Venue",
                max_capacity=max_capacity,
                available_spots=max_capacity if available_spots is None else available_spots,
                creator_id=admin.user_id,
            )
            session.add(event)
            await session.commit()
            return event

    return _make


@pytest.fixture
def capacity_of(session_factory):
    """Read (max_capacity, available_spots, confirmed count) straight from the database."""

    async def _read(event_id) -> tuple[int, int, int]:
        async with session_factory() as session:
            row = (
                await session.execute(
                    select(Event.max_capacity, Event.available_spots).where(Event.id == event_id)
                )
            ).one()
            confirmed = (
                await session.execute(
                    select(func.count())
                    .select_from(Reservation)
                    .where(
                        Reservation.event_id == event_id,
                        Reservation.status == ReservationStatus.CONFIRMED,
                    )
                )
            ).scalar_one()
            return row.max_capacity, row.available_spots, confirmed

    return _read


def token_for(principal: Principal) -> dict:
    token = create_access_token(str(principal.user_id), principal.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin) -> dict:
    return token_for(admin)


@pytest.fixture
def alice_headers(alice) -> dict:
    return token_for(alice)


@pytest.fixture
def bob_headers(bob) -> dict:
    return token_for(bob)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the cache layer makes."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.deleted: list[str] = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self.deleted.append(key)
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def info(self, section=None):
        self._check()
        return {"keyspace_hits": 0, "keyspace_misses": 0}

    async def aclose(self):
        pass


@pytest.fixture
def fake_redis(session_factory, monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(get_settings(), "REDIS_ENABLED", True)
    monkeypatch.setattr(redis_client, "_redis_client", fake)
    return fake
