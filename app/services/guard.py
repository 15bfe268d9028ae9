"""
Authorization guard: decide whether a request may reach a protected operation.

Per request: no bearer token -> token presented -> verified -> role checked.
Every failure before the role check (missing header, malformed, bad
signature, expired, revoked) is collapsed into one UnauthorizedError so the
response says nothing about which check failed. A role outside the required
set is a distinct ForbiddenError. The guard keeps no state and has no side
effects; the same header at the same time always gets the same decision.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from app.models.user import Role
from app.schemas.auth import TokenClaims
from app.services.auth_errors import (
    BadSignatureError,
    ForbiddenError,
    MalformedTokenError,
    MissingCredentialsError,
    TokenExpiredError,
    TokenRevokedError,
    UnauthorizedError,
)
from app.services.tokens import TokenService

logger = logging.getLogger(__name__)

_AUTHENTICATION_ERRORS = (
    MissingCredentialsError,
    MalformedTokenError,
    BadSignatureError,
    TokenExpiredError,
    TokenRevokedError,
)


class AuthorizationGuard:
    """
    Guard configured with an optional set of roles allowed through.

    Takes the bearer token already read from the Authorization header (None
    when the header is absent or uses another scheme).
    """

    def __init__(self, required_roles: Iterable[Role] | None = None) -> None:
        self.required_roles: frozenset[Role] | None = (
            frozenset(Role(r) for r in required_roles) if required_roles is not None else None
        )

    def authenticate(
        self,
        token: str | None,
        tokens: TokenService,
        now: datetime | None = None,
        is_revoked: Callable[[TokenClaims], bool] | None = None,
    ) -> TokenClaims:
        """Token to claims, raising the specific authentication failure."""
        if not token:
            raise MissingCredentialsError()
        claims = tokens.verify(token, now=now)
        if is_revoked is not None and is_revoked(claims):
            raise TokenRevokedError()
        return claims

    def authorize(
        self,
        token: str | None,
        tokens: TokenService,
        now: datetime | None = None,
        is_revoked: Callable[[TokenClaims], bool] | None = None,
    ) -> TokenClaims:
        """
        Return the claims if the request may proceed.

        Raises UnauthorizedError (cause chained) or ForbiddenError. Errors
        from is_revoked other than the authentication ones (for example
        StoreUnavailableError) propagate unchanged.
        """
        try:
            claims = self.authenticate(token, tokens, now=now, is_revoked=is_revoked)
        except _AUTHENTICATION_ERRORS as e:
            logger.debug("Authentication failed: %s", e.__class__.__name__)
            raise UnauthorizedError() from e

        if self.required_roles is not None and claims.role not in self.required_roles:
            logger.info(
                "Access denied: sub=%s role=%s not in %s",
                claims.sub,
                claims.role.value,
                sorted(r.value for r in self.required_roles),
            )
            raise ForbiddenError()
        return claims
