"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created as-is; the
notifier and the distance oracle are ``AsyncMock``s.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from greenride.domain.distance import RouteEstimate
from greenride.domain.entities import Identity, Location
from greenride.domain.enums import Role, VehicleCategory, VerificationStatus
from greenride.infrastructure.database import Base
from greenride.infrastructure.models import UserModel
from greenride.services.lifecycle import RideLifecycleService


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

AIRPORT = Location(19.0896, 72.8656)
ANDHERI = Location(19.1136, 72.8697)

USERS = {
    "driver": (Role.DRIVER, VerificationStatus.APPROVED),
    "other_driver": (Role.DRIVER, VerificationStatus.APPROVED),
    "pending_driver": (Role.DRIVER, VerificationStatus.PENDING),
    "alice": (Role.PASSENGER, VerificationStatus.UNVERIFIED),
    "bob": (Role.PASSENGER, VerificationStatus.UNVERIFIED),
    "carol": (Role.PASSENGER, VerificationStatus.UNVERIFIED),
    "dave": (Role.PASSENGER, VerificationStatus.UNVERIFIED),
    "admin": (Role.ADMIN, VerificationStatus.APPROVED),
}


class FrozenClock:
    """Injectable clock; advance it to cross code expiry."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


async def seed_users(session: AsyncSession) -> dict[str, Identity]:
    identities = {}
    for name, (role, status) in USERS.items():
        user = UserModel(
            name=name.title(),
            email=f"{name}@example.com",
            role=role,
            verification_status=status,
        )
        session.add(user)
        await session.flush()
        identities[name] = Identity(user.id, role, status)
    await session.commit()
    return identities


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db_session) -> dict[str, Identity]:
    return await seed_users(db_session)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def oracle() -> AsyncMock:
    mock = AsyncMock()
    mock.distance_and_duration.return_value = RouteEstimate(
        distance_km=10.0, duration_seconds=1200.0, source="google_directions"
    )
    return mock


@pytest.fixture
def service(db_session, oracle, notifier, clock) -> RideLifecycleService:
    return RideLifecycleService(
        db_session, oracle=oracle, notifier=notifier, clock=clock
    )


@pytest.fixture
def offer_ride(service, users, clock):
    """Factory: the approved driver offers a ride airport -> Andheri."""

    async def _offer(
        total_seats: int = 4,
        max_passengers=None,
        estimated_fare: float = 300.0,
        category: VehicleCategory = VehicleCategory.SEDAN,
        driver: str = "driver",
        departure_in=timedelta(hours=1),
    ):
        return await service.create_ride(
            users[driver],
            origin_name="Airport T2",
            origin=AIRPORT,
            destination_name="Andheri",
            destination=ANDHERI,
            departure_time=clock() + departure_in,
            vehicle_category=category,
            total_seats=total_seats,
            max_passengers=max_passengers,
            estimated_fare=estimated_fare,
        )

    return _offer


@pytest.fixture
def join_ride(service, users):
    """Factory: a passenger requests a seat on a ride."""

    async def _join(ride_id: int, passenger: str, pickup=AIRPORT, drop=ANDHERI):
        return await service.join(
            users[passenger],
            ride_id,
            pickup_name="Pickup",
            pickup=pickup,
            drop_name="Drop",
            drop=drop,
        )

    return _join


def issued_code(notifier: AsyncMock, passenger_id: int) -> str:
    """The last verification code notified to *passenger_id*."""
    for call in reversed(notifier.notify.await_args_list):
        if call.args[0] == passenger_id and "verification_code" in call.kwargs:
            return call.kwargs["verification_code"]
    raise AssertionError(f"no code sent to user {passenger_id}")


@pytest.fixture
def code_for(notifier):
    return lambda passenger_id: issued_code(notifier, passenger_id)
