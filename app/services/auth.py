"""Credential issuer and account operations built on the user store and token service."""

import logging
import uuid
from datetime import UTC, datetime
from typing import NamedTuple

from sqlalchemy.orm import sessionmaker

from app.core.security import (
    burn_password_check,
    fingerprint_matches,
    hash_password,
    normalize_email,
    password_fingerprint,
    verify_password,
)
from app.models import Role, User
from app.schemas.auth import PublicUser, ResetClaims, TokenClaims
from app.services.auth_errors import (
    BadSignatureError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    MalformedTokenError,
    StoreUnavailableError,
    TokenExpiredError,
)
from app.services.tokens import TokenService
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)


class LoginResult(NamedTuple):
    token: str
    claims: TokenClaims
    user: PublicUser


def authenticate(
    store: UserStore,
    tokens: TokenService,
    email: str,
    password: str,
    now: datetime | None = None,
) -> LoginResult:
    """
    Check email/password and issue an access token.

    Unknown email and wrong password raise the same InvalidCredentialsError
    after the same amount of hashing work. StoreUnavailableError propagates.
    Recording last-login is left to the caller (see record_last_login).
    """
    user = store.find_by_email(email)
    if user is None:
        burn_password_check(password)
        logger.info("Login rejected: no active account for the supplied email")
        raise InvalidCredentialsError()
    if not verify_password(password, user.password_hash):
        logger.info("Login rejected: password mismatch for user_id=%s", user.id)
        raise InvalidCredentialsError()

    issued = tokens.issue(sub=user.id, role=Role(user.role), now=now)
    logger.info("Login succeeded: user_id=%s role=%s", user.id, issued.claims.role.value)
    return LoginResult(
        token=issued.token,
        claims=issued.claims,
        user=PublicUser.model_validate(user),
    )


def record_last_login(
    session_factory: sessionmaker,
    user_id: str | uuid.UUID,
    when: datetime | None = None,
) -> None:
    """
    Best-effort last-login update, run after the login response is sent.

    Opens its own session. Store failures are logged and dropped: the field
    is informational and concurrent logins settle on last write wins.
    """
    when = when or datetime.now(UTC)
    session = session_factory()
    try:
        UserStore(session).update_last_login(user_id, when)
    except StoreUnavailableError:
        logger.warning("Could not record last login for user_id=%s; store unavailable", user_id)
    except Exception:
        logger.exception("Could not record last login for user_id=%s", user_id)
    finally:
        session.close()


def register_user(
    store: UserStore,
    *,
    email: str,
    password: str,
    display_name: str,
    role: Role = Role.OWNER,
    phone: str | None = None,
) -> User:
    """Create an account with a bcrypt hash of password. Raises EmailAlreadyRegisteredError."""
    user = store.create(
        email=normalize_email(email),
        password_hash=hash_password(password),
        display_name=display_name,
        role=role,
        phone=phone,
    )
    logger.info("Registered user_id=%s role=%s", user.id, Role(user.role).value)
    return user


def change_password(store: UserStore, user: User, current_password: str, new_password: str) -> None:
    """Replace the password after re-checking the current one. Existing tokens stay valid."""
    if not verify_password(current_password, user.password_hash):
        raise IncorrectPasswordError()
    store.set_password_hash(user, hash_password(new_password))
    logger.info("Password changed for user_id=%s", user.id)


def request_password_reset(
    store: UserStore,
    tokens: TokenService,
    email: str,
    now: datetime | None = None,
) -> str | None:
    """
    Issue a reset token for the active account with this email, or None.

    Callers must answer both outcomes identically. StoreUnavailableError propagates.
    """
    user = store.find_by_email(email)
    if user is None:
        logger.info("Password reset requested for an unknown email")
        return None
    token = tokens.issue_reset(user.id, password_fingerprint(user.password_hash), now=now)
    logger.info("Password reset token issued for user_id=%s", user.id)
    return token


def check_reset_token(
    store: UserStore,
    tokens: TokenService,
    token: str,
    now: datetime | None = None,
) -> tuple[User, ResetClaims]:
    """
    Resolve a reset token to its account.

    Raises InvalidResetTokenError if the token does not verify, has expired,
    belongs to a deactivated account, or the password changed since it was issued.
    """
    try:
        claims = tokens.verify_reset(token, now=now)
    except (MalformedTokenError, BadSignatureError, TokenExpiredError) as e:
        logger.debug("Reset token rejected: %s", e.__class__.__name__)
        raise InvalidResetTokenError() from e

    user = store.find_by_id(claims.sub)
    if user is None or not fingerprint_matches(user.password_hash, claims.fingerprint):
        logger.info("Reset token rejected: stale or account gone (sub=%s)", claims.sub)
        raise InvalidResetTokenError()
    return user, claims


def reset_password(
    store: UserStore,
    tokens: TokenService,
    token: str,
    new_password: str,
    now: datetime | None = None,
) -> User:
    """Set a new password from a reset token. The token cannot be used again."""
    user, _ = check_reset_token(store, tokens, token, now=now)
    store.set_password_hash(user, hash_password(new_password))
    logger.info("Password reset for user_id=%s", user.id)
    return user
