"""Unit tests for app.services.tokens: issuance, validity window, signature and structure checks."""

import base64
import json
import unittest
from datetime import UTC, datetime, timedelta

import jwt

from app.models import Role
from app.services.auth_errors import (
    BadSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)
from app.services.tokens import TokenService
from tests.util import TEST_SECRET, make_settings

ONE_HOUR = timedelta(hours=1)
TEN_AM = datetime(2026, 3, 14, 10, 0, 0, tzinfo=UTC)


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _raw_token(payload: dict, secret: str = TEST_SECRET, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


class TestIssue(unittest.TestCase):
    """issue() signs sub/role with iat=now and exp=now+lifetime."""

    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", ONE_HOUR)

    def test_claims_carry_subject_and_role(self) -> None:
        issued = self.tokens.issue("user-42", Role.PROVIDER, now=TEN_AM)
        claims = self.tokens.verify(issued.token, now=TEN_AM)
        self.assertEqual(claims.sub, "user-42")
        self.assertEqual(claims.role, Role.PROVIDER)
        self.assertEqual(claims, issued.claims)

    def test_expiry_is_issue_time_plus_lifetime(self) -> None:
        issued = self.tokens.issue("u", Role.OWNER, now=TEN_AM)
        self.assertEqual(issued.claims.issued_at, TEN_AM)
        self.assertEqual(issued.claims.expires_at, TEN_AM + ONE_HOUR)
        self.assertGreater(issued.claims.expires_at, issued.claims.issued_at)

    def test_sub_subsecond_issue_time_is_truncated(self) -> None:
        issued = self.tokens.issue("u", Role.OWNER, now=TEN_AM + timedelta(microseconds=750_000))
        self.assertEqual(issued.claims.issued_at, TEN_AM)

    def test_each_token_has_its_own_id(self) -> None:
        first = self.tokens.issue("u", Role.OWNER, now=TEN_AM)
        second = self.tokens.issue("u", Role.OWNER, now=TEN_AM)
        self.assertNotEqual(first.claims.token_id, second.claims.token_id)
        self.assertNotEqual(first.token, second.token)

    def test_token_is_three_segment_string(self) -> None:
        issued = self.tokens.issue("u", Role.GUEST, now=TEN_AM)
        self.assertEqual(len(issued.token.split(".")), 3)

    def test_from_settings_uses_configured_lifetime(self) -> None:
        tokens = TokenService.from_settings(make_settings(JWT_EXPIRE_MINUTES=90, RESET_TOKEN_EXPIRE_MINUTES=15))
        self.assertEqual(tokens.lifetime, timedelta(minutes=90))
        self.assertEqual(tokens.reset_lifetime, timedelta(minutes=15))

    def test_rejects_empty_secret_and_non_positive_lifetime(self) -> None:
        with self.assertRaises(ValueError):
            TokenService("", "HS256", ONE_HOUR)
        with self.assertRaises(ValueError):
            TokenService(TEST_SECRET, "HS256", timedelta(0))
        with self.assertRaises(ValueError):
            TokenService(TEST_SECRET, "HS256", ONE_HOUR, reset_lifetime=timedelta(0))


class TestValidityWindow(unittest.TestCase):
    """A token is accepted for now in [iat, exp) and rejected with TokenExpiredError otherwise."""

    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", ONE_HOUR)
        self.issued = self.tokens.issue("user-1", Role.OWNER, now=TEN_AM)

    def test_accepted_across_the_window(self) -> None:
        for offset in (timedelta(0), timedelta(minutes=30), ONE_HOUR - timedelta(seconds=1)):
            with self.subTest(offset=offset):
                claims = self.tokens.verify(self.issued.token, now=TEN_AM + offset)
                self.assertEqual(claims.sub, "user-1")

    def test_rejected_at_and_after_expiry(self) -> None:
        for offset in (ONE_HOUR, ONE_HOUR + timedelta(seconds=1), timedelta(days=3)):
            with self.subTest(offset=offset):
                with self.assertRaises(TokenExpiredError):
                    self.tokens.verify(self.issued.token, now=TEN_AM + offset)

    def test_one_hour_token_issued_at_ten(self) -> None:
        self.tokens.verify(self.issued.token, now=TEN_AM.replace(minute=59))
        with self.assertRaises(TokenExpiredError):
            self.tokens.verify(self.issued.token, now=TEN_AM.replace(hour=11, minute=1))

    def test_rejected_before_issue_time(self) -> None:
        with self.assertRaises(TokenExpiredError):
            self.tokens.verify(self.issued.token, now=TEN_AM - timedelta(seconds=1))

    def test_naive_check_time_is_treated_as_utc(self) -> None:
        claims = self.tokens.verify(self.issued.token, now=datetime(2026, 3, 14, 10, 30))
        self.assertEqual(claims.sub, "user-1")

    def test_verify_is_idempotent(self) -> None:
        check = TEN_AM + timedelta(minutes=5)
        first = self.tokens.verify(self.issued.token, now=check)
        second = self.tokens.verify(self.issued.token, now=check)
        self.assertEqual(first, second)


class TestSignature(unittest.TestCase):
    """Tokens signed with another secret or algorithm, or tampered with, fail with BadSignatureError."""

    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", ONE_HOUR)

    def test_other_secret(self) -> None:
        foreign = TokenService("another-secret", "HS256", ONE_HOUR).issue("u", Role.ADMIN, now=TEN_AM)
        with self.assertRaises(BadSignatureError):
            self.tokens.verify(foreign.token, now=TEN_AM)

    def test_rotated_secret_invalidates_earlier_tokens(self) -> None:
        issued = self.tokens.issue("u", Role.OWNER, now=TEN_AM)
        rotated = TokenService("rotated-secret", "HS256", ONE_HOUR)
        with self.assertRaises(BadSignatureError):
            rotated.verify(issued.token, now=TEN_AM)

    def test_other_algorithm(self) -> None:
        foreign = TokenService(TEST_SECRET, "HS512", ONE_HOUR).issue("u", Role.OWNER, now=TEN_AM)
        with self.assertRaises(BadSignatureError):
            self.tokens.verify(foreign.token, now=TEN_AM)

    def test_unsigned_token(self) -> None:
        iat = int(TEN_AM.timestamp())
        payload = {"sub": "u", "role": "admin", "iat": iat, "exp": iat + 3600}
        unsigned = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(payload)}."
        with self.assertRaises(BadSignatureError):
            self.tokens.verify(unsigned, now=TEN_AM)

    def test_role_escalation_in_payload(self) -> None:
        issued = self.tokens.issue("u", Role.GUEST, now=TEN_AM)
        header, _, signature = issued.token.split(".")
        iat = int(TEN_AM.timestamp())
        forged = {"sub": "u", "role": "admin", "iat": iat, "exp": iat + 3600, "jti": "x"}
        tampered = f"{header}.{_b64(forged)}.{signature}"
        with self.assertRaises(BadSignatureError):
            self.tokens.verify(tampered, now=TEN_AM)


class TestMalformed(unittest.TestCase):
    """Structurally invalid tokens fail with MalformedTokenError."""

    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", ONE_HOUR)
        self.iat = int(TEN_AM.timestamp())

    def test_syntactically_invalid_strings(self) -> None:
        for token in ("", "   ", "abc", "a.b", "a.b.c.d", "..", "not.a.jwt", ".payload.sig"):
            with self.subTest(token=token):
                with self.assertRaises(MalformedTokenError):
                    self.tokens.verify(token, now=TEN_AM)

    def test_non_string(self) -> None:
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(None, now=TEN_AM)  # type: ignore[arg-type]

    def test_missing_required_claims(self) -> None:
        for missing in ("sub", "role", "iat", "exp"):
            payload = {"sub": "u", "role": "owner", "iat": self.iat, "exp": self.iat + 60}
            del payload[missing]
            with self.subTest(missing=missing):
                with self.assertRaises(MalformedTokenError):
                    self.tokens.verify(_raw_token(payload), now=TEN_AM)

    def test_unknown_role(self) -> None:
        token = _raw_token({"sub": "u", "role": "superuser", "iat": self.iat, "exp": self.iat + 60})
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(token, now=TEN_AM)

    def test_expiry_not_after_issue(self) -> None:
        token = _raw_token({"sub": "u", "role": "owner", "iat": self.iat, "exp": self.iat})
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(token, now=TEN_AM)

    def test_non_integer_times(self) -> None:
        token = _raw_token({"sub": "u", "role": "owner", "iat": "soon", "exp": self.iat + 60})
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(token, now=TEN_AM)

    def test_valid_third_party_token_is_accepted(self) -> None:
        token = _raw_token({"sub": "u", "role": "guest", "iat": self.iat, "exp": self.iat + 60})
        claims = self.tokens.verify(token, now=TEN_AM)
        self.assertEqual(claims.role, Role.GUEST)
        self.assertIsNone(claims.token_id)


class TestResetTokens(unittest.TestCase):
    """Reset tokens have their own lifetime and never pass for access tokens (or the reverse)."""

    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", ONE_HOUR, reset_lifetime=timedelta(minutes=30))

    def test_round_trip_claims(self) -> None:
        token = self.tokens.issue_reset("user-7", "fp-123", now=TEN_AM)
        claims = self.tokens.verify_reset(token, now=TEN_AM + timedelta(minutes=10))
        self.assertEqual(claims.sub, "user-7")
        self.assertEqual(claims.fingerprint, "fp-123")
        self.assertEqual(claims.expires_at, TEN_AM + timedelta(minutes=30))

    def test_expires_after_reset_lifetime(self) -> None:
        token = self.tokens.issue_reset("user-7", "fp-123", now=TEN_AM)
        with self.assertRaises(TokenExpiredError):
            self.tokens.verify_reset(token, now=TEN_AM + timedelta(minutes=30))

    def test_reset_token_is_not_an_access_token(self) -> None:
        token = self.tokens.issue_reset("user-7", "fp-123", now=TEN_AM)
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(token, now=TEN_AM)

    def test_access_token_is_not_a_reset_token(self) -> None:
        issued = self.tokens.issue("user-7", Role.OWNER, now=TEN_AM)
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify_reset(issued.token, now=TEN_AM)

    def test_purpose_claim_cannot_ride_on_an_access_token(self) -> None:
        iat = int(TEN_AM.timestamp())
        token = _raw_token(
            {"sub": "u", "role": "owner", "purpose": "password_reset", "pwd": "x", "iat": iat, "exp": iat + 60}
        )
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify(token, now=TEN_AM)

    def test_wrong_purpose(self) -> None:
        iat = int(TEN_AM.timestamp())
        token = _raw_token({"sub": "u", "purpose": "email_verify", "pwd": "x", "iat": iat, "exp": iat + 60})
        with self.assertRaises(MalformedTokenError):
            self.tokens.verify_reset(token, now=TEN_AM)

    def test_other_secret(self) -> None:
        token = TokenService("another-secret", "HS256", ONE_HOUR).issue_reset("u", "fp", now=TEN_AM)
        with self.assertRaises(BadSignatureError):
            self.tokens.verify_reset(token, now=TEN_AM)


if __name__ == "__main__":
    unittest.main()
