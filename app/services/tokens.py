"""
Signed, time-bound access tokens: issuance and stateless verification.

Tokens are JWTs carrying sub (account id), role, iat, exp and jti. A token is
accepted while iat <= now < exp and its signature verifies against the
secret the service was built with. Verification never touches the user store.

Password-reset tokens share the secret but carry purpose=password_reset and a
fingerprint of the password hash instead of a role, have their own lifetime,
and are never accepted where an access token is expected (or the reverse).
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple

import jwt
from pydantic import ValidationError

from app.core.config import Settings
from app.models.user import Role
from app.schemas.auth import ResetClaims, TokenClaims
from app.services.auth_errors import (
    BadSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)

REQUIRED_CLAIMS = ("sub", "role", "iat", "exp")
RESET_REQUIRED_CLAIMS = ("sub", "purpose", "pwd", "iat", "exp")
RESET_PURPOSE = "password_reset"


def _decode_options(required: tuple[str, ...]) -> dict[str, Any]:
    # Expiry and iat are checked against the caller's clock, not by PyJWT.
    return {
        "verify_signature": True,
        "verify_exp": False,
        "verify_iat": False,
        "verify_nbf": False,
        "require": list(required),
    }


class IssuedToken(NamedTuple):
    token: str
    claims: TokenClaims


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _timestamp(value: Any) -> datetime:
    # bool is an int subclass; a boolean iat/exp is not a timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedTokenError("Token times must be integer timestamps.")
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedTokenError("Token times are out of range.") from e


class TokenService:
    """Issues and verifies access and reset tokens with one fixed secret and algorithm."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=24),
        reset_lifetime: timedelta = timedelta(hours=1),
    ) -> None:
        if not secret:
            raise ValueError("secret must be non-empty")
        if lifetime <= timedelta(0) or reset_lifetime <= timedelta(0):
            raise ValueError("lifetimes must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._lifetime = lifetime
        self._reset_lifetime = reset_lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            lifetime=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
            reset_lifetime=timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        )

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    @property
    def reset_lifetime(self) -> timedelta:
        return self._reset_lifetime

    def issue(self, sub: str | uuid.UUID, role: Role, now: datetime | None = None) -> IssuedToken:
        """
        Sign a token for sub/role valid for the configured lifetime from now.

        now is truncated to whole seconds so the returned claims match what
        a later verify() decodes.
        """
        issued_at = _as_utc(now or _utc_now()).replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        token_id = uuid.uuid4().hex
        payload = {
            "sub": str(sub),
            "role": Role(role).value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": token_id,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        claims = TokenClaims(
            sub=str(sub),
            role=Role(role),
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=token_id,
        )
        return IssuedToken(token=token, claims=claims)

    def verify(self, token: str, now: datetime | None = None) -> TokenClaims:
        """
        Check structure, signature and validity window; return typed claims.

        Raises MalformedTokenError, BadSignatureError or TokenExpiredError.
        """
        payload = self._decode(token, REQUIRED_CLAIMS)
        if "purpose" in payload:
            raise MalformedTokenError("Not an access token.")
        issued_at, expires_at = _window(payload)

        token_id = payload.get("jti")
        try:
            claims = TokenClaims(
                sub=payload["sub"],
                role=payload["role"],
                issued_at=issued_at,
                expires_at=expires_at,
                token_id=token_id if isinstance(token_id, str) else None,
            )
        except ValidationError as e:
            raise MalformedTokenError("Token claims are invalid.") from e

        _check_window(issued_at, expires_at, now)
        return claims

    def issue_reset(self, sub: str | uuid.UUID, fingerprint: str, now: datetime | None = None) -> str:
        """Sign a password-reset token for sub, bound to the current password fingerprint."""
        issued_at = _as_utc(now or _utc_now()).replace(microsecond=0)
        expires_at = issued_at + self._reset_lifetime
        payload = {
            "sub": str(sub),
            "purpose": RESET_PURPOSE,
            "pwd": fingerprint,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_reset(self, token: str, now: datetime | None = None) -> ResetClaims:
        """Same checks as verify(), for reset tokens. Access tokens are Malformed here."""
        payload = self._decode(token, RESET_REQUIRED_CLAIMS)
        if payload.get("purpose") != RESET_PURPOSE:
            raise MalformedTokenError("Not a password-reset token.")
        issued_at, expires_at = _window(payload)
        try:
            claims = ResetClaims(
                sub=payload["sub"],
                fingerprint=payload["pwd"],
                issued_at=issued_at,
                expires_at=expires_at,
            )
        except ValidationError as e:
            raise MalformedTokenError("Token claims are invalid.") from e

        _check_window(issued_at, expires_at, now)
        return claims

    def _decode(self, token: str, required: tuple[str, ...]) -> dict[str, Any]:
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError("Token is empty.")
        segments = token.split(".")
        # An empty signature segment is left to the signature check.
        if len(segments) != 3 or not segments[0] or not segments[1]:
            raise MalformedTokenError("Token must have three segments.")

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options=_decode_options(required),
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise BadSignatureError() from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError() from e


def _window(payload: dict[str, Any]) -> tuple[datetime, datetime]:
    issued_at = _timestamp(payload["iat"])
    expires_at = _timestamp(payload["exp"])
    if expires_at <= issued_at:
        raise MalformedTokenError("Token expires before it was issued.")
    return issued_at, expires_at


def _check_window(issued_at: datetime, expires_at: datetime, now: datetime | None) -> None:
    check_time = _as_utc(now or _utc_now())
    if check_time < issued_at or check_time >= expires_at:
        raise TokenExpiredError()
