"""
Identity provider adapter.

Resolves a bearer JWT (HS256, ``sub`` = user id) to an ``Identity`` carrying
the caller's role and verification status as currently stored on the user
row -- role and verification changes take effect without re-issuing tokens.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from .repositories import UserRepository
from greenride.domain.entities import Identity
from greenride.domain.enums import Role, VerificationStatus


class InvalidCredential(Exception):
    """Token missing, malformed, expired, or naming an unknown user."""


class JwtIdentityProvider:
    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def issue_token(self, user_id: int, ttl_minutes: int = 60 * 24) -> str:
        now = datetime.now(timezone.utc)
        claims = {"sub": str(user_id), "iat": now, "exp": now + timedelta(minutes=ttl_minutes)}
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    async def resolve(self, token: str, session: AsyncSession) -> Identity:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            user_id = int(claims["sub"])
        except jwt.ExpiredSignatureError as exc:
            raise InvalidCredential("Token has expired") from exc
        except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
            raise InvalidCredential("Invalid token") from exc

        user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise InvalidCredential("User not found")

        return Identity(
            id=user.id,
            role=Role(user.role),
            verification_status=VerificationStatus(user.verification_status),
        )
