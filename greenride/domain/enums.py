"""Domain enumerations and state-transition rules."""

import enum


class Role(str, enum.Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"
    ADMIN = "admin"


class VerificationStatus(str, enum.Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    APPROVED = "approved"


class RideStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class MembershipStatus(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SPLIT_PENDING = "split_pending"
    PAID = "paid"
    PAID_FULL = "paid_full"
    CONFIRMED = "confirmed"


class PaymentMode(str, enum.Enum):
    SPLIT = "split"
    FULL = "full"


class VehicleCategory(str, enum.Enum):
    CAR = "car"
    SEDAN = "sedan"
    HATCHBACK = "hatchback"
    SUV = "suv"
    EV = "ev"
    BIKE = "bike"
    SCOOTER = "scooter"
    OTHER = "other"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.UPCOMING: {
        RideStatus.ONGOING,
        RideStatus.COMPLETED,
        RideStatus.CANCELLED,
    },
    RideStatus.ONGOING: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: {RideStatus.CLOSED},
    RideStatus.CLOSED: set(),
    RideStatus.CANCELLED: set(),
}

MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, set[MembershipStatus]] = {
    MembershipStatus.REQUESTED: {
        MembershipStatus.ACCEPTED,
        MembershipStatus.REJECTED,
    },
    MembershipStatus.ACCEPTED: {MembershipStatus.COMPLETED},
    MembershipStatus.REJECTED: set(),
    MembershipStatus.COMPLETED: set(),
}

# Payment only moves forward.
PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.SPLIT_PENDING},
    PaymentStatus.SPLIT_PENDING: {PaymentStatus.PAID, PaymentStatus.PAID_FULL},
    PaymentStatus.PAID: {PaymentStatus.CONFIRMED},
    PaymentStatus.PAID_FULL: {PaymentStatus.CONFIRMED},
    PaymentStatus.CONFIRMED: set(),
}

# Memberships that hold a seat.
SEAT_HOLDING_STATUSES = frozenset(
    {MembershipStatus.ACCEPTED, MembershipStatus.COMPLETED}
)

# Payment statuses that satisfy a passenger's obligation for settlement.
SETTLED_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PAID_FULL, PaymentStatus.CONFIRMED}
)

PAYMENT_MODE_STATUS: dict[PaymentMode, PaymentStatus] = {
    PaymentMode.SPLIT: PaymentStatus.PAID,
    PaymentMode.FULL: PaymentStatus.PAID_FULL,
}
