"""
Loyalty Ledger
==============

Per-identity running totals: points, distance travelled and CO2 saved.
Credits are atomic increments; deductions are conditional decrements that
fail rather than drive points negative.  Protection against crediting the
same ride twice lives with the caller (``SettlementCoordinator``), which
only awards after winning the ride's ``points_awarded`` claim.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from greenride.domain.errors import InsufficientPoints, InvalidRequest
from greenride.infrastructure.models import LoyaltyRecordModel
from greenride.infrastructure.repositories import LoyaltyRepository


class LoyaltyLedger:
    def __init__(self, session: AsyncSession):
        self.repo = LoyaltyRepository(session)

    async def get_or_create(self, user_id: int) -> LoyaltyRecordModel:
        record = await self.repo.get(user_id)
        if record is not None:
            return record
        try:
            return await self.repo.create(user_id)
        except IntegrityError:
            # Another settlement created it first.
            record = await self.repo.get(user_id)
            if record is None:
                raise
            return record

    async def award(
        self,
        user_id: int,
        points: int,
        distance_km: float = 0.0,
        co2_saved_kg: float = 0.0,
    ) -> LoyaltyRecordModel:
        if points < 0:
            raise InvalidRequest("Awarded points must not be negative")
        record = await self.get_or_create(user_id)
        await self.repo.increment(user_id, points, distance_km, co2_saved_kg)
        return await self.repo.refresh(record)

    async def deduct(self, user_id: int, points: int) -> LoyaltyRecordModel:
        if points <= 0:
            raise InvalidRequest("Deducted points must be positive")
        record = await self.get_or_create(user_id)
        if not await self.repo.decrement_points(user_id, points):
            raise InsufficientPoints(
                f"User {user_id} has fewer than {points} points"
            )
        return await self.repo.refresh(record)
