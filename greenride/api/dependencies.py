"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from greenride.config import settings
from greenride.domain.entities import Identity
from greenride.infrastructure.database import async_session_factory
from greenride.infrastructure.distance_oracle import GoogleDirectionsOracle
from greenride.infrastructure.identity import InvalidCredential, JwtIdentityProvider
from greenride.infrastructure.notifications import RedisNotifier
from greenride.infrastructure.redis_client import get_redis
from greenride.services.lifecycle import RideLifecycleService
from greenride.services.loyalty import LoyaltyLedger
from greenride.services.matcher import RideMatcher
from greenride.services.settlement import SettlementCoordinator

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_identity_provider() -> JwtIdentityProvider:
    return JwtIdentityProvider(settings.jwt_secret, settings.jwt_algorithm)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    provider: JwtIdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Resolve the bearer token to the caller's identity, or answer 401."""
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="No authorization token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await provider.resolve(credentials.credentials, db)
    except InvalidCredential as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers={"WWW-Authenticate": "Bearer"}
        ) from exc


def get_distance_oracle() -> GoogleDirectionsOracle:
    return GoogleDirectionsOracle(
        settings.google_maps_api_key,
        timeout_seconds=settings.directions_timeout_seconds,
    )


async def get_notifier() -> RedisNotifier:
    return RedisNotifier(await get_redis(), settings.notification_channel)


async def get_settlement(
    db: AsyncSession = Depends(get_db),
    notifier: RedisNotifier = Depends(get_notifier),
) -> SettlementCoordinator:
    return SettlementCoordinator(db, notifier=notifier)


async def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    oracle: GoogleDirectionsOracle = Depends(get_distance_oracle),
    notifier: RedisNotifier = Depends(get_notifier),
    settlement: SettlementCoordinator = Depends(get_settlement),
) -> RideLifecycleService:
    return RideLifecycleService(
        db, oracle=oracle, notifier=notifier, settlement=settlement
    )


async def get_matcher(db: AsyncSession = Depends(get_db)) -> RideMatcher:
    return RideMatcher(db)


async def get_ledger(db: AsyncSession = Depends(get_db)) -> LoyaltyLedger:
    return LoyaltyLedger(db)
