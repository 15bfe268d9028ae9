"""ORM model for tokens revoked at logout (used only when TOKEN_REVOCATION_ENABLED)."""

from sqlalchemy import Column, DateTime, String, Uuid, func

from app.models.base import Base


class RevokedToken(Base):
    """
    One row per logged-out token id (jti).

    Rows are only meaningful until expires_at; the retention job deletes them after that.
    """

    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    user_id = Column(Uuid, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
