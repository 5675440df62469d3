"""
Settlement Coordinator
======================

``attempt(ride_id)`` is invoked after every payment event (passenger marks
paid, driver confirms) and may be invoked explicitly at any time.  It is
idempotent: points are credited at most once per ride no matter how often
it runs.

Eligibility
-----------
* ride status is ``completed``
* ``points_awarded`` is still false
* every accepted-or-completed membership is settled
  (``paid``, ``paid_full`` or ``confirmed``)

The ride row is read ``FOR UPDATE`` so payment events on one ride are
evaluated one at a time; the last payer always sees every other payment.
When eligible, the ride's ``points_awarded`` flag is claimed with a single
conditional UPDATE; only the claimer credits the ledger.  Claim and credits
run in the caller's transaction, so they commit or roll back together.
An ineligible ride is not an error: the outcome names the reason and
nothing is written.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from greenride.config import settings
from greenride.domain.entities import SettlementOutcome
from greenride.domain.enums import SETTLED_PAYMENT_STATUSES, PaymentStatus, RideStatus
from greenride.domain.errors import NotFound
from greenride.infrastructure.repositories import MembershipRepository, RideRepository
from greenride.services.loyalty import LoyaltyLedger

logger = logging.getLogger(__name__)


class SettlementCoordinator:
    def __init__(
        self,
        session: AsyncSession,
        notifier=None,
        driver_bonus: Optional[int] = None,
        passenger_bonus: Optional[int] = None,
    ):
        self.rides = RideRepository(session)
        self.memberships = MembershipRepository(session)
        self.ledger = LoyaltyLedger(session)
        self.notifier = notifier
        self.driver_bonus = (
            settings.driver_bonus_points if driver_bonus is None else driver_bonus
        )
        self.passenger_bonus = (
            settings.passenger_bonus_points
            if passenger_bonus is None
            else passenger_bonus
        )

    async def attempt(self, ride_id: int) -> SettlementOutcome:
        ride = await self.rides.get_by_id_for_update(ride_id)
        if ride is None:
            raise NotFound(f"Ride {ride_id} not found")

        if RideStatus(ride.status) != RideStatus.COMPLETED:
            return SettlementOutcome(ride_id, False, "ride_not_completed")
        if ride.points_awarded:
            return SettlementOutcome(ride_id, False, "already_awarded")

        holders = await self.memberships.get_seat_holders(ride_id)
        outstanding = [
            m
            for m in holders
            if PaymentStatus(m.payment_status) not in SETTLED_PAYMENT_STATUSES
        ]
        if outstanding:
            return SettlementOutcome(ride_id, False, "payments_outstanding")

        if not await self.rides.claim_points_award(ride_id):
            return SettlementOutcome(ride_id, False, "already_awarded")
        await self.rides.refresh(ride)

        distance = ride.distance_km or 0.0
        co2_saved = ride.co2_saved_kg or 0.0
        credited = {ride.driver_id: self.driver_bonus}
        await self.ledger.award(ride.driver_id, self.driver_bonus, distance, co2_saved)
        for m in holders:
            await self.ledger.award(
                m.passenger_id, self.passenger_bonus, distance, co2_saved
            )
            credited[m.passenger_id] = self.passenger_bonus

        logger.info(
            "Ride %d settled: %d identities credited", ride_id, len(credited)
        )
        if self.notifier is not None:
            for user_id, points in credited.items():
                await self.notifier.notify(
                    user_id, "points_awarded", ride_id=ride_id, points=points
                )
        return SettlementOutcome(ride_id, True, "awarded", credited)
