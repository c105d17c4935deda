"""
Shared fixtures: an in-memory SQLite database (aiosqlite) standing in for
Postgres, an httpx client wired to the app with `get_db` overridden, and a
factory for seeding carriers at known positions.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carrier_match.database import Base, get_db
from carrier_match.main import app
from carrier_match.middleware.auth import create_access_token
from carrier_match.models import CarrierProfile, CarrierVehicle, User

KM_PER_DEG = 111.195  # haversine with R=6371


@pytest.fixture
def km_north():
    """Degrees of latitude for `km` along a meridian."""
    return lambda km: km / KM_PER_DEG


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}

    return _headers


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLite ships with foreign keys off; Postgres always enforces them.
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def make_carrier(session_factory, now):
    """Seed a user + carrier profile (+ optional vehicle) directly in the store."""

    async def _make(
        *,
        lat: float | None = 0.0,
        lng: float | None = 0.0,
        seen_ago: timedelta | None = timedelta(seconds=5),
        status: str = "AVAILABLE",
        plan_tier: str = "BASIC",
        vehicle_type: str | None = "MOTORBIKE",
        banned_at: datetime | None = None,
        suspended_until: datetime | None = None,
        name: str | None = None,
        phone: str | None = None,
        user_id: str | None = None,
    ) -> CarrierProfile:
        user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
        async with session_factory() as session:
            session.add(User(id=user_id, name=name or f"Carrier {user_id}"))
            profile = CarrierProfile(
                id=str(uuid.uuid4()),
                user_id=user_id,
                phone=phone,
                status=status,
                plan_tier=plan_tier,
                verification_status="VERIFIED",
                last_seen_at=(now - seen_ago) if seen_ago is not None else None,
                last_seen_lat=lat,
                last_seen_lng=lng,
                banned_at=banned_at,
                banned_reason="fraud" if banned_at else None,
                suspended_until=suspended_until,
            )
            session.add(profile)
            if vehicle_type:
                session.add(CarrierVehicle(carrier_id=profile.id, type=vehicle_type))
            await session.commit()
            return profile

    return _make
