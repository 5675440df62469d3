"""
Engine error taxonomy.

Every rejection carries a machine-readable ``code`` naming the invariant
that blocked it, so the HTTP layer can render an actionable message.
Settlement ineligibility is an outcome, not an error, and has no class here.
"""

from __future__ import annotations


class RideEngineError(Exception):
    """Base class for every rejection raised by the ride engine."""

    code = "engine_error"
    http_status = 400

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class AuthorizationError(RideEngineError):
    """Caller has the wrong role or is not a party to the ride."""

    code = "forbidden"
    http_status = 403


class NotFound(RideEngineError):
    code = "not_found"
    http_status = 404


class InvalidRequest(RideEngineError):
    code = "invalid_request"
    http_status = 422


class InvalidStateTransition(RideEngineError):
    """Raised when a status change violates a transition table."""

    code = "invalid_transition"
    http_status = 409


class CapacityConflict(RideEngineError):
    code = "capacity_reached"
    http_status = 409


class AlreadyJoined(RideEngineError):
    code = "already_joined"
    http_status = 409


class VerificationRequired(RideEngineError):
    code = "verification_required"
    http_status = 409


class VerificationFailed(RideEngineError):
    """Code mismatch (``code_mismatch``) or expiry (``code_expired``)."""

    code = "code_mismatch"
    http_status = 400


class InsufficientPoints(RideEngineError):
    code = "insufficient_points"
    http_status = 409


class DistanceOracleUnavailable(Exception):
    """The routing service could not answer; callers fall back locally."""
