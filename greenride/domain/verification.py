"""Pickup verification codes (OTP): issue, then check equality and expiry."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .clock import as_utc, utcnow


@dataclass(frozen=True)
class IssuedCode:
    code: str
    expires_at: datetime


class VerificationCodeIssuer:
    def __init__(
        self,
        length: int = 6,
        ttl_minutes: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.length = length
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def issue(self) -> IssuedCode:
        code = "".join(secrets.choice("0123456789") for _ in range(self.length))
        return IssuedCode(code=code, expires_at=self.clock() + self.ttl)

    def is_expired(self, expires_at: datetime) -> bool:
        return self.clock() > as_utc(expires_at)

    def check(
        self, supplied: str, stored: Optional[str], expires_at: Optional[datetime]
    ) -> Optional[str]:
        """
        Return ``None`` when *supplied* verifies, else the failure code
        (``code_mismatch`` or ``code_expired``).  Expiry wins over a correct
        match.
        """
        if stored is None or expires_at is None:
            return "code_mismatch"
        if self.is_expired(expires_at):
            return "code_expired"
        if not secrets.compare_digest(str(supplied).encode(), stored.encode()):
            return "code_mismatch"
        return None
