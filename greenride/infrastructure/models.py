"""
SQLAlchemy ORM models  (PostgreSQL in production, SQLite in tests).

Tables
------
* ``users``            -- identities known to the identity provider
* ``rides``            -- driver-offered trips
* ``ride_memberships`` -- one passenger's request / seat on one ride
* ``loyalty_records``  -- per-identity points, distance and CO2 totals

Constraints
-----------
* CHECK on ``rides`` keeps ``0 <= available_seats`` and
  ``1 <= max_passengers <= total_seats - 1`` true even if application code
  misbehaves.
* CHECK on ``loyalty_records.points >= 0``: deductions can never overdraw.
* UNIQUE (ride_id, passenger_id): one membership per passenger per ride.

Indexes
-------
* **B-Tree** on ``status``, ``departure_time`` and ``origin_cell`` (H3) for
  ride search; ``driver_id`` / ``passenger_id`` / ``ride_id`` for look-ups.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from .database import Base
from greenride.domain.enums import (
    MembershipStatus,
    PaymentStatus,
    RideStatus,
    Role,
    VehicleCategory,
    VerificationStatus,
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(Enum(Role), default=Role.PASSENGER, nullable=False)
    verification_status = Column(
        Enum(VerificationStatus),
        default=VerificationStatus.UNVERIFIED,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    origin_name = Column(String(255), nullable=False)
    origin_lat = Column(Float, nullable=False)
    origin_lng = Column(Float, nullable=False)
    origin_cell = Column(String(20), nullable=True)
    destination_name = Column(String(255), nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)

    departure_time = Column(DateTime(timezone=True), nullable=False)
    vehicle_category = Column(
        Enum(VehicleCategory), default=VehicleCategory.CAR, nullable=False
    )
    total_seats = Column(Integer, nullable=False)
    max_passengers = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    estimated_fare = Column(Float, default=0.0, nullable=False)

    status = Column(Enum(RideStatus), default=RideStatus.UPCOMING, nullable=False)

    # Recorded at completion
    distance_km = Column(Float, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    co2_emitted_kg = Column(Float, nullable=True)
    co2_saved_kg = Column(Float, nullable=True)

    points_awarded = Column(Boolean, default=False, nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="ck_rides_seats_nonneg"),
        CheckConstraint(
            "max_passengers >= 1 AND max_passengers <= total_seats - 1",
            name="ck_rides_max_passengers",
        ),
        Index("idx_rides_status_departure", "status", "departure_time"),
        Index("idx_rides_origin_cell", "origin_cell"),
        Index("idx_rides_driver", "driver_id"),
    )


class RideMembershipModel(Base):
    __tablename__ = "ride_memberships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    pickup_name = Column(String(255), nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    drop_name = Column(String(255), nullable=False)
    drop_lat = Column(Float, nullable=False)
    drop_lng = Column(Float, nullable=False)

    distance_km = Column(Float, default=0.0, nullable=False)
    fare_share = Column(Float, default=0.0, nullable=False)

    status = Column(
        Enum(MembershipStatus), default=MembershipStatus.REQUESTED, nullable=False
    )
    verification_code = Column(String(12), nullable=True)
    code_expires_at = Column(DateTime(timezone=True), nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    payment_status = Column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("ride_id", "passenger_id", name="uq_membership_passenger"),
        Index("idx_memberships_ride", "ride_id"),
        Index("idx_memberships_passenger", "passenger_id"),
    )


class LoyaltyRecordModel(Base):
    __tablename__ = "loyalty_records"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    points = Column(Integer, default=0, nullable=False)
    total_distance_km = Column(Float, default=0.0, nullable=False)
    total_co2_saved_kg = Column(Float, default=0.0, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_loyalty_points_nonneg"),
    )
