"""
User store: the persistence boundary the issuer and account endpoints consult.

Connectivity failures (OperationalError, InterfaceError, pool timeouts) are
rolled back and re-raised as StoreUnavailableError so callers can answer 503
instead of treating an outage as bad credentials.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.core.security import normalize_email
from app.models import RevokedToken, Role, User
from app.services.auth_errors import EmailAlreadyRegisteredError, StoreUnavailableError

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


def _coerce_id(user_id: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


class UserStore:
    """Account lookups and mutations over one SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except _UNAVAILABLE_ERRORS as e:
            self.session.rollback()
            logger.warning("User store unavailable during %s: %s", operation, e.__class__.__name__)
            raise StoreUnavailableError() from e

    def find_by_email(self, email: str) -> User | None:
        """Active account with this email (case-insensitive), or None."""
        with self._guard_errors("find_by_email"):
            stmt = select(User).where(
                User.email == normalize_email(email),
                User.deleted_at.is_(None),
            )
            return self.session.scalars(stmt).first()

    def find_by_id(self, user_id: str | uuid.UUID) -> User | None:
        """Active account with this id, or None (also None for ids that are not UUIDs)."""
        key = _coerce_id(user_id)
        if key is None:
            return None
        with self._guard_errors("find_by_id"):
            stmt = select(User).where(User.id == key, User.deleted_at.is_(None))
            return self.session.scalars(stmt).first()

    def update_last_login(self, user_id: str | uuid.UUID, when: datetime) -> None:
        key = _coerce_id(user_id)
        if key is None:
            return
        with self._guard_errors("update_last_login"):
            self.session.execute(
                update(User).where(User.id == key).values(last_login_at=when)
            )
            self.session.commit()

    def create(
        self,
        *,
        email: str,
        password_hash: str,
        display_name: str,
        role: Role = Role.OWNER,
        phone: str | None = None,
    ) -> User:
        """Insert an account. Raises EmailAlreadyRegisteredError if an active account has the email."""
        if not password_hash:
            raise ValueError("password_hash must be non-empty")
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            display_name=display_name,
            role=Role(role),
            phone=phone,
        )
        with self._guard_errors("create"):
            self.session.add(user)
            try:
                self.session.commit()
            except IntegrityError as e:
                self.session.rollback()
                raise EmailAlreadyRegisteredError() from e
            self.session.refresh(user)
        return user

    def list_active(self) -> list[User]:
        with self._guard_errors("list_active"):
            stmt = select(User).where(User.deleted_at.is_(None)).order_by(User.created_at, User.email)
            return list(self.session.scalars(stmt).all())

    def update_profile(
        self,
        user: User,
        *,
        display_name: str | None = None,
        phone: str | None = None,
    ) -> User:
        if display_name is not None:
            user.display_name = display_name.strip()
        if phone is not None:
            user.phone = phone.strip() or None
        with self._guard_errors("update_profile"):
            self.session.commit()
            self.session.refresh(user)
        return user

    def set_password_hash(self, user: User, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("password_hash must be non-empty")
        user.password_hash = password_hash
        with self._guard_errors("set_password_hash"):
            self.session.commit()

    def deactivate(self, user_id: str | uuid.UUID, when: datetime) -> bool:
        """Soft-delete an active account. Returns False if there was none."""
        user = self.find_by_id(user_id)
        if user is None:
            return False
        user.deleted_at = when
        with self._guard_errors("deactivate"):
            self.session.commit()
        return True

    def revoke_token(self, token_id: str, user_id: str | uuid.UUID, expires_at: datetime) -> None:
        """Record a logged-out token id. Revoking the same id twice is a no-op."""
        key = _coerce_id(user_id)
        if key is None:
            raise ValueError(f"not an account id: {user_id!r}")
        with self._guard_errors("revoke_token"):
            if self.session.get(RevokedToken, token_id) is not None:
                return
            self.session.add(RevokedToken(jti=token_id, user_id=key, expires_at=expires_at))
            self.session.commit()

    def is_token_revoked(self, token_id: str | None) -> bool:
        if not token_id:
            return False
        with self._guard_errors("is_token_revoked"):
            return self.session.get(RevokedToken, token_id) is not None
