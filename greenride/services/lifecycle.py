"""
Ride Lifecycle State Machine
============================

Owns every externally triggered transition on a ride and its memberships::

    create ─> upcoming ──start──> ongoing ──complete──> completed ──close──> closed
                 │  └──────────────complete───────────────┘
                 └──cancel──> cancelled

    membership:  requested ─accept─> accepted ─complete─> completed
                     └─reject─> rejected

    payment:     pending ─complete─> split_pending ─pay─> paid | paid_full
                                                   ─confirm─> confirmed

Concurrency safety
------------------
* **accept** takes its seat with one conditional UPDATE
  (``RideRepository.claim_seat``): the capacity check and the decrement are
  the same statement, so concurrent accepts can never oversubscribe a ride.
  A loser raises ``CapacityConflict``; the request's session rolls back and
  leaves every record as it was.
* All other transitions are guarded by status preconditions from the
  transition tables, so replays and out-of-order arrivals are rejected
  rather than applied twice.

Side effects that are not state (notifications) go through the notifier,
which never raises.  Loyalty crediting is not done here: payment events
hand over to ``SettlementCoordinator``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from greenride.config import settings
from greenride.domain.clock import as_utc, utcnow
from greenride.domain.distance import great_circle_estimate, haversine_km
from greenride.domain.emissions import EmissionsAccountant
from greenride.domain.entities import (
    Identity,
    Location,
    SettlementOutcome,
    advance_payment,
    has_capacity,
    require_status,
    transition,
    transition_membership,
    transition_ride,
)
from greenride.domain.enums import (
    MEMBERSHIP_TRANSITIONS,
    PAYMENT_MODE_STATUS,
    RIDE_TRANSITIONS,
    MembershipStatus,
    PaymentMode,
    PaymentStatus,
    RideStatus,
    Role,
    VehicleCategory,
)
from greenride.domain.errors import (
    AlreadyJoined,
    AuthorizationError,
    CapacityConflict,
    DistanceOracleUnavailable,
    InvalidRequest,
    InvalidStateTransition,
    NotFound,
    VerificationFailed,
    VerificationRequired,
)
from greenride.domain.fares import FareAllocator, estimate_fuel_cost
from greenride.domain.matching import ride_h3_cell
from greenride.domain.verification import VerificationCodeIssuer
from greenride.infrastructure.models import RideMembershipModel, RideModel
from greenride.infrastructure.repositories import MembershipRepository, RideRepository
from greenride.services.settlement import SettlementCoordinator

logger = logging.getLogger(__name__)


class RideLifecycleService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        oracle,
        notifier,
        config=settings,
        clock: Callable[[], datetime] = utcnow,
        settlement: Optional[SettlementCoordinator] = None,
    ):
        self.rides = RideRepository(session)
        self.memberships = MembershipRepository(session)
        self.oracle = oracle
        self.notifier = notifier
        self.config = config
        self.clock = clock
        self.issuer = VerificationCodeIssuer(
            length=config.verification_code_length,
            ttl_minutes=config.verification_code_ttl_minutes,
            clock=clock,
        )
        self.fares = FareAllocator()
        self.emissions = EmissionsAccountant()
        self.settlement = settlement or SettlementCoordinator(
            session,
            notifier=notifier,
            driver_bonus=config.driver_bonus_points,
            passenger_bonus=config.passenger_bonus_points,
        )

    # ── Driver: create ────────────────────────────────────────────────

    async def create_ride(
        self,
        identity: Identity,
        *,
        origin_name: str,
        origin: Location,
        destination_name: str,
        destination: Location,
        departure_time: datetime,
        vehicle_category: VehicleCategory,
        total_seats: int,
        max_passengers: Optional[int] = None,
        estimated_fare: Optional[float] = None,
    ) -> RideModel:
        if identity.role != Role.DRIVER:
            raise AuthorizationError("Only drivers can offer rides")
        if not identity.is_approved_driver:
            raise AuthorizationError(
                "Driver verification must be approved before offering rides",
                code="driver_not_approved",
            )
        if total_seats < 2:
            raise InvalidRequest("A ride needs at least one passenger seat")
        if max_passengers is None:
            max_passengers = total_seats - 1
        if not 1 <= max_passengers <= total_seats - 1:
            raise InvalidRequest(
                f"max_passengers must be between 1 and {total_seats - 1}"
            )

        if estimated_fare is None:
            estimated_fare = estimate_fuel_cost(
                haversine_km(
                    origin.latitude,
                    origin.longitude,
                    destination.latitude,
                    destination.longitude,
                ),
                vehicle_category,
                self.config.fuel_price_per_litre,
            )

        ride = await self.rides.create(
            RideModel(
                driver_id=identity.id,
                origin_name=origin_name,
                origin_lat=origin.latitude,
                origin_lng=origin.longitude,
                origin_cell=ride_h3_cell(
                    origin.latitude, origin.longitude, self.config.h3_resolution
                ),
                destination_name=destination_name,
                destination_lat=destination.latitude,
                destination_lng=destination.longitude,
                departure_time=as_utc(departure_time),
                vehicle_category=vehicle_category,
                total_seats=total_seats,
                max_passengers=max_passengers,
                available_seats=total_seats - 1,
                estimated_fare=estimated_fare,
                status=RideStatus.UPCOMING,
                points_awarded=False,
            )
        )
        logger.info("Ride %d created by driver %d", ride.id, identity.id)
        return ride

    # ── Passenger: join ───────────────────────────────────────────────

    async def join(
        self,
        identity: Identity,
        ride_id: int,
        *,
        pickup_name: str,
        pickup: Location,
        drop_name: str,
        drop: Location,
    ) -> RideMembershipModel:
        if identity.role != Role.PASSENGER:
            raise AuthorizationError("Only passengers can join rides")

        ride = await self._load_ride(ride_id)
        require_status(ride, RideStatus.UPCOMING, action="join")
        if await self.memberships.get_for_passenger(ride_id, identity.id):
            raise AlreadyJoined("You already have a request on this ride")
        if not has_capacity(
            ride.available_seats, ride.total_seats, ride.max_passengers
        ):
            raise CapacityConflict("Ride has no seats left")

        sub_distance = haversine_km(
            pickup.latitude, pickup.longitude, drop.latitude, drop.longitude
        )
        ride_distance = haversine_km(
            ride.origin_lat, ride.origin_lng, ride.destination_lat, ride.destination_lng
        )
        try:
            membership = await self.memberships.create(
                RideMembershipModel(
                    ride_id=ride_id,
                    passenger_id=identity.id,
                    pickup_name=pickup_name,
                    pickup_lat=pickup.latitude,
                    pickup_lng=pickup.longitude,
                    drop_name=drop_name,
                    drop_lat=drop.latitude,
                    drop_lng=drop.longitude,
                    distance_km=sub_distance,
                    fare_share=round(
                        self.fares.share(
                            sub_distance, ride_distance, ride.estimated_fare
                        ),
                        2,
                    ),
                    status=MembershipStatus.REQUESTED,
                    verified=False,
                    payment_status=PaymentStatus.PENDING,
                )
            )
        except IntegrityError as exc:
            # Lost a race against a concurrent join by the same passenger.
            raise AlreadyJoined("You already have a request on this ride") from exc
        logger.info("Passenger %d requested ride %d", identity.id, ride_id)
        await self.notifier.notify(
            ride.driver_id, "join_requested", ride_id=ride_id, membership_id=membership.id
        )
        return membership

    # ── Driver: accept / reject / verify ──────────────────────────────

    async def accept(
        self, identity: Identity, ride_id: int, membership_id: int
    ) -> RideMembershipModel:
        ride = await self._driver_ride(identity, ride_id)
        require_status(ride, RideStatus.UPCOMING, action="accept passengers on")
        membership = await self._load_membership(ride, membership_id)
        transition(
            MembershipStatus(membership.status),
            MembershipStatus.ACCEPTED,
            MEMBERSHIP_TRANSITIONS,
        )
        if not has_capacity(
            ride.available_seats, ride.total_seats, ride.max_passengers
        ):
            raise CapacityConflict("Ride has reached its passenger capacity")

        # Seat first: a lost capacity race then writes nothing.
        if not await self.rides.claim_seat(ride_id):
            raise CapacityConflict("Ride has reached its passenger capacity")
        if not await self.memberships.claim_for_acceptance(membership_id):
            raise InvalidStateTransition("Request is no longer awaiting a decision")
        await self.rides.refresh(ride)
        await self.memberships.refresh(membership)

        issued = self.issuer.issue()
        membership.verification_code = issued.code
        membership.code_expires_at = issued.expires_at
        membership.verified = False
        await self.memberships.save(membership)

        logger.info(
            "Ride %d: membership %d accepted (%d seats left)",
            ride_id, membership_id, ride.available_seats,
        )
        await self.notifier.notify(
            membership.passenger_id,
            "request_accepted",
            ride_id=ride_id,
            verification_code=issued.code,
            expires_at=issued.expires_at.isoformat(),
        )
        return membership

    async def reject(
        self, identity: Identity, ride_id: int, membership_id: int
    ) -> RideMembershipModel:
        ride = await self._driver_ride(identity, ride_id)
        require_status(ride, RideStatus.UPCOMING, action="reject passengers on")
        membership = await self._load_membership(ride, membership_id)
        transition_membership(membership, MembershipStatus.REJECTED)
        await self.memberships.save(membership)

        logger.info("Ride %d: membership %d rejected", ride_id, membership_id)
        await self.notifier.notify(
            membership.passenger_id, "request_rejected", ride_id=ride_id
        )
        return membership

    async def verify(
        self, identity: Identity, ride_id: int, membership_id: int, code: str
    ) -> RideMembershipModel:
        ride = await self._driver_ride(identity, ride_id)
        require_status(ride, RideStatus.UPCOMING, action="verify passengers on")
        membership = await self._load_membership(ride, membership_id)
        if MembershipStatus(membership.status) != MembershipStatus.ACCEPTED:
            raise InvalidStateTransition("Only accepted passengers can be verified")
        if membership.verified:
            return membership

        failure = self.issuer.check(
            code, membership.verification_code, membership.code_expires_at
        )
        if failure == "code_expired":
            raise VerificationFailed("Verification code has expired", code=failure)
        if failure is not None:
            raise VerificationFailed("Verification code does not match", code=failure)

        membership.verified = True
        await self.memberships.save(membership)
        logger.info("Ride %d: membership %d verified", ride_id, membership_id)
        await self.notifier.notify(
            membership.passenger_id, "pickup_verified", ride_id=ride_id
        )
        return membership

    async def reissue_code(
        self, identity: Identity, ride_id: int, membership_id: int
    ) -> RideMembershipModel:
        ride = await self._load_ride(ride_id)
        membership = await self._load_membership(ride, membership_id)
        if identity.id not in (ride.driver_id, membership.passenger_id):
            raise AuthorizationError("Not a party to this ride")
        require_status(ride, RideStatus.UPCOMING, action="re-issue codes on")
        if MembershipStatus(membership.status) != MembershipStatus.ACCEPTED:
            raise InvalidStateTransition("Codes exist only for accepted passengers")
        if membership.verified:
            raise InvalidStateTransition("Passenger is already verified")

        issued = self.issuer.issue()
        membership.verification_code = issued.code
        membership.code_expires_at = issued.expires_at
        await self.memberships.save(membership)
        await self.notifier.notify(
            membership.passenger_id,
            "verification_code",
            ride_id=ride_id,
            verification_code=issued.code,
            expires_at=issued.expires_at.isoformat(),
        )
        return membership

    # ── Driver: ride transitions ──────────────────────────────────────

    async def start(self, identity: Identity, ride_id: int) -> RideModel:
        ride = await self._driver_ride(identity, ride_id)
        require_status(ride, RideStatus.UPCOMING, action="start")

        accepted = [
            m
            for m in await self.memberships.get_for_ride(ride_id)
            if MembershipStatus(m.status) == MembershipStatus.ACCEPTED
        ]
        unverified = [m for m in accepted if not m.verified]
        if unverified:
            raise VerificationRequired(
                f"{len(unverified)} accepted passenger(s) not yet verified"
            )

        transition_ride(ride, RideStatus.ONGOING)
        ride.started_at = self.clock()
        await self.rides.save(ride)

        logger.info("Ride %d started with %d passengers", ride_id, len(accepted))
        for m in accepted:
            await self.notifier.notify(m.passenger_id, "ride_started", ride_id=ride_id)
        return ride

    async def complete(self, identity: Identity, ride_id: int) -> RideModel:
        ride = await self._driver_ride(identity, ride_id)
        transition(RideStatus(ride.status), RideStatus.COMPLETED, RIDE_TRANSITIONS)

        try:
            route = await self.oracle.distance_and_duration(
                ride.origin_lat, ride.origin_lng, ride.destination_lat, ride.destination_lng
            )
        except DistanceOracleUnavailable as exc:
            logger.warning("Ride %d: distance oracle unavailable (%s)", ride_id, exc)
            route = great_circle_estimate(
                ride.origin_lat,
                ride.origin_lng,
                ride.destination_lat,
                ride.destination_lng,
                speed_kmh=self.config.fallback_speed_kmh,
            )

        accepted = [
            m
            for m in await self.memberships.get_for_ride(ride_id)
            if MembershipStatus(m.status) == MembershipStatus.ACCEPTED
        ]
        category = VehicleCategory(ride.vehicle_category)
        ride.distance_km = route.distance_km
        ride.duration_seconds = route.duration_seconds
        ride.co2_emitted_kg = self.emissions.emitted_kg(category, route.distance_km)
        ride.co2_saved_kg = self.emissions.saved_kg(
            category, route.distance_km, len(accepted)
        )

        shares = self.fares.allocate(
            [m.distance_km for m in accepted], ride.estimated_fare
        )
        for m, share in zip(accepted, shares):
            m.fare_share = share
            transition_membership(m, MembershipStatus.COMPLETED)
            advance_payment(m, PaymentStatus.SPLIT_PENDING)

        transition_ride(ride, RideStatus.COMPLETED)
        ride.completed_at = self.clock()
        await self.rides.save(ride)

        logger.info(
            "Ride %d completed: %.2f km (%s), %d passengers, %.2f kg CO2 saved",
            ride_id, route.distance_km, route.source, len(accepted), ride.co2_saved_kg,
        )
        for m in accepted:
            await self.notifier.notify(
                m.passenger_id, "ride_completed", ride_id=ride_id, fare_share=m.fare_share
            )
        return ride

    async def close(self, identity: Identity, ride_id: int) -> RideModel:
        ride = await self._driver_ride(identity, ride_id)
        transition_ride(ride, RideStatus.CLOSED)
        await self.rides.save(ride)
        logger.info("Ride %d closed", ride_id)
        return ride

    async def cancel(self, identity: Identity, ride_id: int) -> RideModel:
        ride = await self._driver_ride(identity, ride_id)
        transition_ride(ride, RideStatus.CANCELLED)
        await self.rides.save(ride)

        logger.info("Ride %d cancelled", ride_id)
        for m in await self.memberships.get_for_ride(ride_id):
            if MembershipStatus(m.status) in (
                MembershipStatus.REQUESTED,
                MembershipStatus.ACCEPTED,
            ):
                await self.notifier.notify(
                    m.passenger_id, "ride_cancelled", ride_id=ride_id
                )
        return ride

    # ── Payments ──────────────────────────────────────────────────────

    async def mark_paid(
        self, identity: Identity, ride_id: int, mode: PaymentMode
    ) -> tuple[RideMembershipModel, SettlementOutcome]:
        # Row lock: concurrent payers must see each other's committed status.
        ride = await self._load_ride(ride_id, for_update=True)
        membership = await self.memberships.get_for_passenger(ride_id, identity.id)
        if membership is None:
            raise AuthorizationError("You are not a passenger on this ride")
        require_status(ride, RideStatus.COMPLETED, action="record payment for")

        advance_payment(membership, PAYMENT_MODE_STATUS[PaymentMode(mode)])
        await self.memberships.save(membership)
        logger.info(
            "Ride %d: passenger %d marked payment %s",
            ride_id, identity.id, membership.payment_status.value,
        )
        await self.notifier.notify(
            ride.driver_id,
            "payment_marked",
            ride_id=ride_id,
            membership_id=membership.id,
            mode=PaymentMode(mode).value,
        )
        return membership, await self.settlement.attempt(ride_id)

    async def confirm_payment(
        self, identity: Identity, ride_id: int, membership_id: int
    ) -> tuple[RideMembershipModel, SettlementOutcome]:
        ride = await self._driver_ride(identity, ride_id, for_update=True)
        require_status(ride, RideStatus.COMPLETED, action="confirm payment for")
        membership = await self._load_membership(ride, membership_id)

        advance_payment(membership, PaymentStatus.CONFIRMED)
        await self.memberships.save(membership)
        logger.info("Ride %d: payment of membership %d confirmed", ride_id, membership_id)
        await self.notifier.notify(
            membership.passenger_id, "payment_confirmed", ride_id=ride_id
        )
        return membership, await self.settlement.attempt(ride_id)

    async def settle(self, identity: Identity, ride_id: int) -> SettlementOutcome:
        """Explicit settlement attempt by the ride's driver or an admin."""
        ride = await self._load_ride(ride_id)
        if identity.role != Role.ADMIN and ride.driver_id != identity.id:
            raise AuthorizationError("Only the ride's driver can settle it")
        return await self.settlement.attempt(ride_id)

    # ── Helpers ───────────────────────────────────────────────────────

    async def _load_ride(self, ride_id: int, for_update: bool = False) -> RideModel:
        if for_update:
            ride = await self.rides.get_by_id_for_update(ride_id)
        else:
            ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound(f"Ride {ride_id} not found")
        return ride

    async def _driver_ride(
        self, identity: Identity, ride_id: int, for_update: bool = False
    ) -> RideModel:
        ride = await self._load_ride(ride_id, for_update)
        if ride.driver_id != identity.id:
            raise AuthorizationError("Only the ride's driver can do this")
        return ride

    async def _load_membership(
        self, ride: RideModel, membership_id: int
    ) -> RideMembershipModel:
        membership = await self.memberships.get_by_id(membership_id)
        if membership is None or membership.ride_id != ride.id:
            raise NotFound(f"Membership {membership_id} not found on ride {ride.id}")
        return membership
