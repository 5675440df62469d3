"""Unit tests for pickup verification codes."""

from datetime import datetime, timedelta, timezone

from greenride.domain.verification import VerificationCodeIssuer

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestIssue:
    def test_code_is_numeric_and_fixed_length(self):
        issued = VerificationCodeIssuer(length=6, clock=lambda: T0).issue()
        assert len(issued.code) == 6
        assert issued.code.isdigit()

    def test_expiry_after_ttl(self):
        issued = VerificationCodeIssuer(ttl_minutes=10, clock=lambda: T0).issue()
        assert issued.expires_at == T0 + timedelta(minutes=10)


class TestCheck:
    def test_correct_code_before_expiry(self):
        clock = _Clock(T0)
        issuer = VerificationCodeIssuer(clock=clock)
        clock.now = T0 + timedelta(minutes=9)
        assert issuer.check("123456", "123456", T0 + timedelta(minutes=10)) is None

    def test_correct_code_after_expiry_fails_as_expired(self):
        """Issued 123456 at T, correct code supplied at T+11 min."""
        clock = _Clock(T0 + timedelta(minutes=11))
        issuer = VerificationCodeIssuer(ttl_minutes=10, clock=clock)
        assert issuer.check("123456", "123456", T0 + timedelta(minutes=10)) == "code_expired"

    def test_mismatch(self):
        issuer = VerificationCodeIssuer(clock=lambda: T0)
        assert issuer.check("654321", "123456", T0 + timedelta(minutes=10)) == "code_mismatch"

    def test_comparison_is_exact(self):
        issuer = VerificationCodeIssuer(clock=lambda: T0)
        assert issuer.check("0123456", "123456", T0 + timedelta(minutes=10)) == "code_mismatch"

    def test_non_ascii_input_is_a_mismatch(self):
        issuer = VerificationCodeIssuer(clock=lambda: T0)
        assert issuer.check("١٢٣٤٥٦", "123456", T0 + timedelta(minutes=10)) == "code_mismatch"

    def test_no_code_issued(self):
        issuer = VerificationCodeIssuer(clock=lambda: T0)
        assert issuer.check("123456", None, None) == "code_mismatch"

    def test_naive_expiry_read_back_from_sqlite(self):
        issuer = VerificationCodeIssuer(clock=lambda: T0)
        naive = (T0 + timedelta(minutes=5)).replace(tzinfo=None)
        assert issuer.check("123456", "123456", naive) is None
