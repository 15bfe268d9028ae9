"""ORM model for marketplace accounts (auth and RBAC)."""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, String, Uuid, func

from app.models.base import Base


class Role(str, enum.Enum):
    """Closed set of account roles carried in the token's role claim."""

    OWNER = "owner"
    PROVIDER = "provider"
    ADMIN = "admin"
    GUEST = "guest"


class User(Base):
    """
    Account used for JWT authentication and role-based access control.

    email is stored normalised (stripped, lower-case) and is unique among
    accounts that are not deleted. Accounts are deactivated by setting
    deleted_at; rows stay for bookings and reviews that reference them.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(
        Enum(
            Role,
            name="user_role",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        default=Role.OWNER,
        index=True,
    )
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_users_email_active",
            "email",
            unique=True,
            postgresql_where=deleted_at.is_(None),
            sqlite_where=deleted_at.is_(None),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None
