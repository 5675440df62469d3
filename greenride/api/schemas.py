"""
Pydantic request / response schemas for the REST API.

Request models normalise legacy field names (``start_lat``,
``pickup_location_name``, ``otp`` ...) into one canonical schema; nothing
behind the API ever sees the aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from greenride.domain.entities import Location
from greenride.domain.enums import (
    MembershipStatus,
    PaymentMode,
    PaymentStatus,
    RideStatus,
    VehicleCategory,
)


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _flatten_points(data: Any, points: dict[str, tuple[str, ...]]) -> Any:
    """
    Accept ``{"origin": {"lat": .., "lng": ..}}`` style payloads by spreading
    each nested pair into ``origin_lat`` / ``origin_lng``.
    """
    if not isinstance(data, dict):
        return data
    data = dict(data)
    for prefix, keys in points.items():
        for key in keys:
            point = data.get(key)
            if not isinstance(point, dict):
                continue
            lat = point.get("lat", point.get("latitude"))
            lng = point.get("lng", point.get("longitude"))
            data.setdefault(f"{prefix}_lat", lat)
            data.setdefault(f"{prefix}_lng", lng)
            break
    return data


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    origin_name: str = Field(
        ..., max_length=255, validation_alias=_aliases("origin_name", "start_location_name")
    )
    origin_lat: float = Field(
        ..., ge=-90, le=90, validation_alias=_aliases("origin_lat", "start_lat")
    )
    origin_lng: float = Field(
        ..., ge=-180, le=180, validation_alias=_aliases("origin_lng", "start_lng")
    )
    destination_name: str = Field(
        ...,
        max_length=255,
        validation_alias=_aliases("destination_name", "end_location_name"),
    )
    destination_lat: float = Field(
        ..., ge=-90, le=90, validation_alias=_aliases("destination_lat", "end_lat")
    )
    destination_lng: float = Field(
        ..., ge=-180, le=180, validation_alias=_aliases("destination_lng", "end_lng")
    )
    departure_time: datetime
    vehicle_category: VehicleCategory = Field(
        VehicleCategory.CAR,
        validation_alias=_aliases("vehicle_category", "vehicle_type"),
    )
    total_seats: int = Field(..., ge=2, le=10)
    max_passengers: Optional[int] = Field(
        None, ge=1, description="Defaults to total_seats - 1 (driver takes a seat)."
    )
    estimated_fare: Optional[float] = Field(
        None, ge=0, description="Estimated from fuel cost when omitted."
    )

    @model_validator(mode="before")
    @classmethod
    def _nested_points(cls, data: Any) -> Any:
        return _flatten_points(
            data,
            {
                "origin": ("origin", "start", "start_location"),
                "destination": ("destination", "end", "end_location"),
            },
        )

    @field_validator("departure_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def origin(self) -> Location:
        return Location(self.origin_lat, self.origin_lng)

    @property
    def destination(self) -> Location:
        return Location(self.destination_lat, self.destination_lng)


class JoinRequest(BaseModel):
    pickup_name: str = Field(
        ..., max_length=255, validation_alias=_aliases("pickup_name", "pickup_location_name")
    )
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    drop_name: str = Field(
        ...,
        max_length=255,
        validation_alias=_aliases("drop_name", "drop_location_name", "dropoff_name"),
    )
    drop_lat: float = Field(
        ..., ge=-90, le=90, validation_alias=_aliases("drop_lat", "dropoff_lat")
    )
    drop_lng: float = Field(
        ..., ge=-180, le=180, validation_alias=_aliases("drop_lng", "dropoff_lng")
    )

    @model_validator(mode="before")
    @classmethod
    def _nested_points(cls, data: Any) -> Any:
        return _flatten_points(
            data,
            {
                "pickup": ("pickup", "pickup_location"),
                "drop": ("drop", "dropoff", "drop_location"),
            },
        )

    @property
    def pickup(self) -> Location:
        return Location(self.pickup_lat, self.pickup_lng)

    @property
    def drop(self) -> Location:
        return Location(self.drop_lat, self.drop_lng)


class VerifyRequest(BaseModel):
    code: str = Field(
        ..., pattern=r"^[0-9]{4,10}$", validation_alias=_aliases("code", "otp")
    )


class PaymentRequest(BaseModel):
    mode: PaymentMode = PaymentMode.SPLIT


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    driver_id: int
    origin_name: str
    origin_lat: float
    origin_lng: float
    destination_name: str
    destination_lat: float
    destination_lng: float
    departure_time: datetime
    vehicle_category: VehicleCategory
    total_seats: int
    max_passengers: int
    available_seats: int
    estimated_fare: float
    status: RideStatus
    distance_km: Optional[float] = None
    duration_seconds: Optional[float] = None
    co2_emitted_kg: Optional[float] = None
    co2_saved_kg: Optional[float] = None
    points_awarded: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MembershipResponse(BaseModel):
    """A membership as anyone on the ride may see it (no verification code)."""

    id: int
    ride_id: int
    passenger_id: int
    pickup_name: str
    pickup_lat: float
    pickup_lng: float
    drop_name: str
    drop_lat: float
    drop_lng: float
    distance_km: float
    fare_share: float
    status: MembershipStatus
    verified: bool
    payment_status: PaymentStatus

    model_config = {"from_attributes": True}


class OwnMembershipResponse(MembershipResponse):
    """The passenger's own view, including the code to show the driver."""

    verification_code: Optional[str] = None
    code_expires_at: Optional[datetime] = None


class RideDetailResponse(RideResponse):
    memberships: list[MembershipResponse] = []


class RideMatchResponse(BaseModel):
    ride: RideResponse
    start_distance_km: float
    end_distance_km: float
    avg_distance_km: float


class SettlementResponse(BaseModel):
    ride_id: int
    awarded: bool
    reason: str
    credited: dict[int, int] = {}

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    membership: MembershipResponse
    settlement: SettlementResponse


class LoyaltyResponse(BaseModel):
    user_id: int
    points: int
    total_distance_km: float
    total_co2_saved_kg: float

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
