"""
Domain value objects and state-machine helpers.

Patterns used
-------------
- **State Pattern**: every status change on a ride, a membership or a
  payment goes through ``transition`` and its table in ``enums``; anything
  not in the table raises ``InvalidStateTransition``.
- ``expected_available_seats`` states the seat invariant once, for the
  services and the tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, TypeVar

from .enums import (
    MEMBERSHIP_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    RIDE_TRANSITIONS,
    SEAT_HOLDING_STATUSES,
    MembershipStatus,
    PaymentStatus,
    RideStatus,
    Role,
    VerificationStatus,
)
from .errors import InvalidStateTransition

S = TypeVar("S")


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Identity:
    """A caller as resolved by the identity provider."""

    id: int
    role: Role
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED

    @property
    def is_approved_driver(self) -> bool:
        return (
            self.role == Role.DRIVER
            and self.verification_status == VerificationStatus.APPROVED
        )


@dataclass(frozen=True)
class RideMatch:
    ride: object
    start_distance_km: float
    end_distance_km: float

    @property
    def avg_distance_km(self) -> float:
        return (self.start_distance_km + self.end_distance_km) / 2


@dataclass
class SettlementOutcome:
    ride_id: int
    awarded: bool
    reason: str
    credited: dict[int, int] = field(default_factory=dict)


# ── Transitions ───────────────────────────────────────────────────────


def transition(current: S, new: S, table: dict[S, set[S]]) -> S:
    """Return *new* if ``current -> new`` is in *table*, else raise."""
    allowed = table.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {_label(current)} to {_label(new)}"
        )
    return new


def transition_ride(ride, new_status: RideStatus) -> None:
    ride.status = transition(RideStatus(ride.status), new_status, RIDE_TRANSITIONS)


def transition_membership(membership, new_status: MembershipStatus) -> None:
    membership.status = transition(
        MembershipStatus(membership.status), new_status, MEMBERSHIP_TRANSITIONS
    )


def advance_payment(membership, new_status: PaymentStatus) -> None:
    membership.payment_status = transition(
        PaymentStatus(membership.payment_status), new_status, PAYMENT_TRANSITIONS
    )


def require_status(ride, *allowed: RideStatus, action: str) -> None:
    if RideStatus(ride.status) not in allowed:
        raise InvalidStateTransition(
            f"Cannot {action} a ride in status {_label(ride.status)}"
        )


# ── Invariants ────────────────────────────────────────────────────────


def seat_holders(memberships: Iterable) -> list:
    return [
        m for m in memberships if MembershipStatus(m.status) in SEAT_HOLDING_STATUSES
    ]


def expected_available_seats(total_seats: int, memberships: Iterable) -> int:
    return total_seats - 1 - len(seat_holders(memberships))


def has_capacity(
    available_seats: int, total_seats: int, max_passengers: int
) -> bool:
    """Free seat *and* accepted count below the driver's passenger cap."""
    accepted = total_seats - 1 - available_seats
    return available_seats > 0 and accepted < max_passengers


def _label(value: Optional[object]) -> str:
    return getattr(value, "value", str(value))
