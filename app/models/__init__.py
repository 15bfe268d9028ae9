"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.revoked_token import RevokedToken
from app.models.user import Role, User

__all__ = ["Base", "RevokedToken", "Role", "User"]
