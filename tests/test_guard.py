"""Tests for app.services.guard: credential checks collapse to Unauthorized, role checks to Forbidden."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from app.models import Role
from app.services.auth_errors import (
    BadSignatureError,
    ForbiddenError,
    MalformedTokenError,
    MissingCredentialsError,
    StoreUnavailableError,
    TokenExpiredError,
    TokenRevokedError,
    UnauthorizedError,
)
from app.services.guard import AuthorizationGuard
from app.services.tokens import TokenService
from tests.util import TEST_SECRET

NOW = datetime(2026, 8, 3, 9, 0, tzinfo=UTC)


class GuardTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tokens = TokenService(TEST_SECRET, "HS256", timedelta(hours=1))
        self.owner_token = self.tokens.issue("owner-1", Role.OWNER, now=NOW).token
        self.admin_token = self.tokens.issue("admin-1", Role.ADMIN, now=NOW).token


class TestUnauthorized(GuardTestCase):
    """Every authentication failure surfaces as the same UnauthorizedError."""

    def test_each_failure_is_collapsed_with_cause(self) -> None:
        foreign = TokenService("other-secret", "HS256", timedelta(hours=1)).issue("x", Role.ADMIN, now=NOW)
        cases = {
            "no token": (None, MissingCredentialsError, NOW),
            "empty token": ("", MissingCredentialsError, NOW),
            "garbage token": ("garbage", MalformedTokenError, NOW),
            "foreign signature": (foreign.token, BadSignatureError, NOW),
            "expired": (self.owner_token, TokenExpiredError, NOW + timedelta(hours=2)),
        }
        guard = AuthorizationGuard()
        messages = set()
        for name, (token, cause, now) in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(UnauthorizedError) as ctx:
                    guard.authorize(token, self.tokens, now=now)
                self.assertIsInstance(ctx.exception.__cause__, cause)
                messages.add(ctx.exception.message)
        self.assertEqual(len(messages), 1)

    def test_revoked_token(self) -> None:
        guard = AuthorizationGuard()
        with self.assertRaises(UnauthorizedError) as ctx:
            guard.authorize(self.owner_token, self.tokens, now=NOW, is_revoked=lambda claims: True)
        self.assertIsInstance(ctx.exception.__cause__, TokenRevokedError)

    def test_authenticate_raises_specific_error(self) -> None:
        guard = AuthorizationGuard()
        with self.assertRaises(TokenExpiredError):
            guard.authenticate(self.owner_token, self.tokens, now=NOW + timedelta(hours=1))

    def test_unauthorized_wins_over_role_check(self) -> None:
        guard = AuthorizationGuard([Role.ADMIN])
        with self.assertRaises(UnauthorizedError):
            guard.authorize(None, self.tokens, now=NOW)


class TestRoles(GuardTestCase):
    """A verified caller outside the required roles is Forbidden, not Unauthorized."""

    def test_disallowed_role_is_forbidden(self) -> None:
        guard = AuthorizationGuard([Role.ADMIN])
        with self.assertRaises(ForbiddenError):
            guard.authorize(self.owner_token, self.tokens, now=NOW)

    def test_allowed_role_gets_claims(self) -> None:
        guard = AuthorizationGuard([Role.ADMIN, Role.PROVIDER])
        claims = guard.authorize(self.admin_token, self.tokens, now=NOW)
        self.assertEqual(claims.sub, "admin-1")
        self.assertEqual(claims.role, Role.ADMIN)

    def test_no_required_roles_admits_any_role(self) -> None:
        guard = AuthorizationGuard()
        for role in Role:
            token = self.tokens.issue(f"{role.value}-1", role, now=NOW).token
            with self.subTest(role=role):
                self.assertEqual(guard.authorize(token, self.tokens, now=NOW).role, role)


class TestRevocationLookup(GuardTestCase):
    def test_not_revoked_passes_and_lookup_sees_claims(self) -> None:
        is_revoked = MagicMock(return_value=False)
        claims = AuthorizationGuard().authorize(self.owner_token, self.tokens, now=NOW, is_revoked=is_revoked)
        is_revoked.assert_called_once_with(claims)

    def test_store_outage_propagates(self) -> None:
        is_revoked = MagicMock(side_effect=StoreUnavailableError())
        with self.assertRaises(StoreUnavailableError):
            AuthorizationGuard().authorize(self.owner_token, self.tokens, now=NOW, is_revoked=is_revoked)


class TestDeterminism(GuardTestCase):
    """Same token and time give the same decision every time."""

    def test_repeated_decisions_match(self) -> None:
        guard = AuthorizationGuard([Role.OWNER])
        first = guard.authorize(self.owner_token, self.tokens, now=NOW)
        second = guard.authorize(self.owner_token, self.tokens, now=NOW)
        self.assertEqual(first, second)
        for _ in range(2):
            with self.assertRaises(ForbiddenError):
                AuthorizationGuard([Role.GUEST]).authorize(self.owner_token, self.tokens, now=NOW)


if __name__ == "__main__":
    unittest.main()
