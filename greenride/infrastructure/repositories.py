"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The three guarded writes (seat claim,
settlement claim, point deduction) are single conditional UPDATEs whose
row count says whether the guard held.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import LoyaltyRecordModel, RideMembershipModel, RideModel, UserModel
from greenride.domain.enums import (
    SEAT_HOLDING_STATUSES,
    MembershipStatus,
    RideStatus,
)


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def save(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def refresh(self, ride: RideModel) -> RideModel:
        await self.session.refresh(ride)
        return ride

    async def get_by_id_for_update(self, ride_id: int) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE: payment events on one ride run one at a time."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_driver(self, driver_id: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_id == driver_id)
            .order_by(RideModel.departure_time.desc())
        )
        return list(result.scalars().all())

    async def search_candidates(
        self,
        *,
        window_start: datetime,
        window_end: datetime,
        origin_cells: list[str] | None = None,
    ) -> list[RideModel]:
        """Upcoming rides with a free seat departing inside the window."""
        query = select(RideModel).where(
            RideModel.status == RideStatus.UPCOMING,
            RideModel.departure_time >= window_start,
            RideModel.departure_time <= window_end,
            RideModel.available_seats > 0,
        )
        if origin_cells is not None:
            query = query.where(RideModel.origin_cell.in_(origin_cells))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def claim_seat(self, ride_id: int) -> bool:
        """
        Atomically take one seat if the ride is still upcoming, has a free
        seat, and its accepted count is below ``max_passengers``.

        accepted = total_seats - 1 - available_seats, so
        ``accepted < max_passengers`` becomes a pure column predicate and the
        check and the decrement happen in one statement.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.UPCOMING,
                RideModel.available_seats > 0,
                RideModel.available_seats
                > RideModel.total_seats - 1 - RideModel.max_passengers,
            )
            .values(available_seats=RideModel.available_seats - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_points_award(self, ride_id: int) -> bool:
        """Flip ``points_awarded`` false -> true; only one caller ever wins."""
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.COMPLETED,
                RideModel.points_awarded.is_(False),
            )
            .values(points_awarded=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class MembershipRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, membership: RideMembershipModel) -> RideMembershipModel:
        self.session.add(membership)
        await self.session.flush()
        return membership

    async def save(self, membership: RideMembershipModel) -> RideMembershipModel:
        self.session.add(membership)
        await self.session.flush()
        return membership

    async def get_by_id(self, membership_id: int) -> Optional[RideMembershipModel]:
        return await self.session.get(RideMembershipModel, membership_id)

    async def refresh(self, membership: RideMembershipModel) -> RideMembershipModel:
        await self.session.refresh(membership)
        return membership

    async def get_for_passenger(
        self, ride_id: int, passenger_id: int
    ) -> Optional[RideMembershipModel]:
        result = await self.session.execute(
            select(RideMembershipModel).where(
                RideMembershipModel.ride_id == ride_id,
                RideMembershipModel.passenger_id == passenger_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_passenger(self, passenger_id: int) -> list[RideMembershipModel]:
        result = await self.session.execute(
            select(RideMembershipModel)
            .where(RideMembershipModel.passenger_id == passenger_id)
            .order_by(RideMembershipModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_for_ride(self, ride_id: int) -> list[RideMembershipModel]:
        result = await self.session.execute(
            select(RideMembershipModel)
            .where(RideMembershipModel.ride_id == ride_id)
            .order_by(RideMembershipModel.id)
        )
        return list(result.scalars().all())

    async def get_seat_holders(self, ride_id: int) -> list[RideMembershipModel]:
        result = await self.session.execute(
            select(RideMembershipModel)
            .where(
                RideMembershipModel.ride_id == ride_id,
                RideMembershipModel.status.in_(SEAT_HOLDING_STATUSES),
            )
            .order_by(RideMembershipModel.id)
        )
        return list(result.scalars().all())

    async def claim_for_acceptance(self, membership_id: int) -> bool:
        """``requested -> accepted`` guarded so one membership is accepted once."""
        result = await self.session.execute(
            update(RideMembershipModel)
            .where(
                RideMembershipModel.id == membership_id,
                RideMembershipModel.status == MembershipStatus.REQUESTED,
            )
            .values(status=MembershipStatus.ACCEPTED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class LoyaltyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int) -> Optional[LoyaltyRecordModel]:
        return await self.session.get(LoyaltyRecordModel, user_id)

    async def create(self, user_id: int) -> LoyaltyRecordModel:
        """Insert inside a savepoint so a duplicate key leaves the transaction usable."""
        record = LoyaltyRecordModel(
            user_id=user_id, points=0, total_distance_km=0.0, total_co2_saved_kg=0.0
        )
        async with self.session.begin_nested():
            self.session.add(record)
            await self.session.flush()
        return record

    async def refresh(self, record: LoyaltyRecordModel) -> LoyaltyRecordModel:
        await self.session.refresh(record)
        return record

    async def increment(
        self, user_id: int, points: int, distance_km: float, co2_saved_kg: float
    ) -> None:
        await self.session.execute(
            update(LoyaltyRecordModel)
            .where(LoyaltyRecordModel.user_id == user_id)
            .values(
                points=LoyaltyRecordModel.points + points,
                total_distance_km=LoyaltyRecordModel.total_distance_km + distance_km,
                total_co2_saved_kg=LoyaltyRecordModel.total_co2_saved_kg
                + co2_saved_kg,
            )
            .execution_options(synchronize_session=False)
        )

    async def decrement_points(self, user_id: int, points: int) -> bool:
        result = await self.session.execute(
            update(LoyaltyRecordModel)
            .where(
                LoyaltyRecordModel.user_id == user_id,
                LoyaltyRecordModel.points >= points,
            )
            .values(points=LoyaltyRecordModel.points - points)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)
