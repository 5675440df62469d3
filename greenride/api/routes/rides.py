"""
Ride endpoints
==============

POST  /api/v1/rides                         -- offer a ride (approved drivers)
GET   /api/v1/rides/search                  -- rides near a passenger's route
GET   /api/v1/rides/mine                    -- rides the caller drives
GET   /api/v1/rides/joined                  -- the caller's memberships
GET   /api/v1/rides/{ride_id}               -- ride with its memberships
POST  /api/v1/rides/{ride_id}/join          -- request a seat
POST  /api/v1/rides/{ride_id}/memberships/{membership_id}/<action>
                                            -- accept / reject / verify /
                                               reissue-code / confirm-payment
POST  /api/v1/rides/{ride_id}/<action>      -- start / complete / close /
                                               pay / settle
PATCH /api/v1/rides/{ride_id}/cancel        -- cancel an upcoming ride
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from greenride.api.dependencies import (
    get_current_identity,
    get_db,
    get_lifecycle,
    get_matcher,
)
from greenride.api.middleware import limiter
from greenride.api.schemas import (
    ErrorResponse,
    JoinRequest,
    MembershipResponse,
    OwnMembershipResponse,
    PaymentRequest,
    PaymentResponse,
    RideCreateRequest,
    RideDetailResponse,
    RideMatchResponse,
    RideResponse,
    SettlementResponse,
    VerifyRequest,
)
from greenride.config import settings
from greenride.domain.entities import Identity, Location
from greenride.domain.enums import Role
from greenride.domain.errors import NotFound
from greenride.infrastructure.repositories import MembershipRepository, RideRepository
from greenride.services.lifecycle import RideLifecycleService
from greenride.services.matcher import RideMatcher

router = APIRouter(
    prefix="/rides",
    tags=["rides"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


def _payment_response(membership, outcome) -> PaymentResponse:
    return PaymentResponse(
        membership=MembershipResponse.model_validate(membership),
        settlement=SettlementResponse.model_validate(outcome),
    )


# ── Collection routes (declared before /{ride_id}) ────────────────────


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Offer a ride",
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.create_ride(
        identity,
        origin_name=body.origin_name,
        origin=body.origin,
        destination_name=body.destination_name,
        destination=body.destination,
        departure_time=body.departure_time,
        vehicle_category=body.vehicle_category,
        total_seats=body.total_seats,
        max_passengers=body.max_passengers,
        estimated_fare=body.estimated_fare,
    )


@router.get(
    "/search",
    response_model=list[RideMatchResponse],
    summary="Search rides near a route",
    description=(
        "Upcoming rides with a free seat, departing within the search window, "
        "whose origin and destination both lie within radius_km of the "
        "searcher's.  Sorted by mean distance, nearest first."
    ),
)
@limiter.limit(settings.rate_limit)
async def search_rides(
    request: Request,
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lng: float = Query(..., ge=-180, le=180),
    destination_lat: float = Query(..., ge=-90, le=90),
    destination_lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=100),
    window_hours: Optional[float] = Query(None, gt=0, le=48),
    identity: Identity = Depends(get_current_identity),
    matcher: RideMatcher = Depends(get_matcher),
):
    matches = await matcher.search(
        Location(origin_lat, origin_lng),
        Location(destination_lat, destination_lng),
        radius_km=radius_km,
        window_hours=window_hours,
    )
    return [
        RideMatchResponse(
            ride=RideResponse.model_validate(m.ride),
            start_distance_km=round(m.start_distance_km, 3),
            end_distance_km=round(m.end_distance_km, 3),
            avg_distance_km=round(m.avg_distance_km, 3),
        )
        for m in matches
    ]


@router.get("/mine", response_model=list[RideResponse], summary="Rides I drive")
@limiter.limit(settings.rate_limit)
async def my_rides(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_by_driver(identity.id)


@router.get(
    "/joined",
    response_model=list[OwnMembershipResponse],
    summary="Rides I asked to join",
    description="Includes the pickup verification code once a request is accepted.",
)
@limiter.limit(settings.rate_limit)
async def joined_rides(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await MembershipRepository(db).get_by_passenger(identity.id)


# ── Single ride ───────────────────────────────────────────────────────


@router.get(
    "/{ride_id}",
    response_model=RideDetailResponse,
    summary="Get a ride",
    description=(
        "The driver and admins see every membership; a passenger sees only "
        "their own.  Verification codes are never included."
    ),
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if ride is None:
        raise NotFound(f"Ride {ride_id} not found")

    memberships = await MembershipRepository(db).get_for_ride(ride_id)
    if identity.role != Role.ADMIN and identity.id != ride.driver_id:
        memberships = [m for m in memberships if m.passenger_id == identity.id]

    detail = RideDetailResponse.model_validate(ride)
    detail.memberships = [MembershipResponse.model_validate(m) for m in memberships]
    return detail


@router.post(
    "/{ride_id}/join",
    status_code=201,
    response_model=MembershipResponse,
    summary="Request a seat",
)
@limiter.limit(settings.rate_limit)
async def join_ride(
    request: Request,
    ride_id: int,
    body: JoinRequest,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.join(
        identity,
        ride_id,
        pickup_name=body.pickup_name,
        pickup=body.pickup,
        drop_name=body.drop_name,
        drop=body.drop,
    )


# ── Membership transitions ────────────────────────────────────────────


@router.post(
    "/{ride_id}/memberships/{membership_id}/accept",
    response_model=MembershipResponse,
    summary="Accept a join request",
    description=(
        "Takes one seat atomically; answers 409 capacity_reached when the "
        "ride filled up first.  The passenger is sent a verification code."
    ),
)
@limiter.limit(settings.rate_limit)
async def accept_request(
    request: Request,
    ride_id: int,
    membership_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.accept(identity, ride_id, membership_id)


@router.post(
    "/{ride_id}/memberships/{membership_id}/reject",
    response_model=MembershipResponse,
    summary="Reject a join request",
)
@limiter.limit(settings.rate_limit)
async def reject_request(
    request: Request,
    ride_id: int,
    membership_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.reject(identity, ride_id, membership_id)


@router.post(
    "/{ride_id}/memberships/{membership_id}/verify",
    response_model=MembershipResponse,
    summary="Verify a passenger at pickup",
    responses={400: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def verify_passenger(
    request: Request,
    ride_id: int,
    membership_id: int,
    body: VerifyRequest,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.verify(identity, ride_id, membership_id, body.code)


@router.post(
    "/{ride_id}/memberships/{membership_id}/reissue-code",
    response_model=MembershipResponse,
    summary="Send a fresh verification code",
)
@limiter.limit(settings.rate_limit)
async def reissue_code(
    request: Request,
    ride_id: int,
    membership_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.reissue_code(identity, ride_id, membership_id)


@router.post(
    "/{ride_id}/memberships/{membership_id}/confirm-payment",
    response_model=PaymentResponse,
    summary="Confirm a passenger's payment",
)
@limiter.limit(settings.rate_limit)
async def confirm_payment(
    request: Request,
    ride_id: int,
    membership_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    membership, outcome = await service.confirm_payment(
        identity, ride_id, membership_id
    )
    return _payment_response(membership, outcome)


# ── Ride transitions ──────────────────────────────────────────────────


@router.post(
    "/{ride_id}/start",
    response_model=RideResponse,
    summary="Start the ride",
    description="Every accepted passenger must have been verified.",
)
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.start(identity, ride_id)


@router.post(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Complete the ride",
    description=(
        "Records distance (road distance, or great-circle when the directions "
        "service is unavailable), CO2 emitted and saved, and each passenger's "
        "fare share.  No points are credited until payments settle."
    ),
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.complete(identity, ride_id)


@router.post("/{ride_id}/close", response_model=RideResponse, summary="Close the ride")
@limiter.limit(settings.rate_limit)
async def close_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.close(identity, ride_id)


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel an upcoming ride",
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.cancel(identity, ride_id)


@router.post(
    "/{ride_id}/pay",
    response_model=PaymentResponse,
    summary="Mark my share as paid",
)
@limiter.limit(settings.rate_limit)
async def mark_paid(
    request: Request,
    ride_id: int,
    body: PaymentRequest,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    membership, outcome = await service.mark_paid(identity, ride_id, body.mode)
    return _payment_response(membership, outcome)


@router.post(
    "/{ride_id}/settle",
    response_model=SettlementResponse,
    summary="Attempt loyalty settlement",
    description=(
        "Idempotent.  Credits points once every passenger has paid; otherwise "
        "reports why nothing was credited."
    ),
)
@limiter.limit(settings.rate_limit)
async def settle_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_current_identity),
    service: RideLifecycleService = Depends(get_lifecycle),
):
    return await service.settle(identity, ride_id)
