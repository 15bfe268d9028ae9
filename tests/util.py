"""Shared test helpers: settings, an in-memory user store and account factory."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models import Base, Role, User
from app.services.auth import register_user
from app.services.user_store import UserStore

TEST_SECRET = "test-signing-secret"


def make_settings(**overrides: object) -> Settings:
    """Settings pinned for tests; explicit values win over env and .env."""
    values: dict[str, object] = {
        "APP_ENV": "dev",
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": TEST_SECRET,
        "JWT_ALGORITHM": "HS256",
        "JWT_EXPIRE_MINUTES": 60,
        "TOKEN_REVOCATION_ENABLED": False,
        "RETENTION_ENABLED": True,
        "STORE_RETRY_AFTER_SEC": 7,
    }
    values.update(overrides)
    return Settings(**values)


def make_session_factory() -> sessionmaker:
    """Fresh in-memory SQLite database with all tables, shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def add_user(
    session_factory: sessionmaker,
    email: str = "a@x.com",
    password: str = "secret1",
    role: Role = Role.OWNER,
    display_name: str = "Asha",
) -> User:
    """Register an account through the service layer and return it (detached, loaded)."""
    session = session_factory()
    try:
        return register_user(
            UserStore(session),
            email=email,
            password=password,
            display_name=display_name,
            role=role,
        )
    finally:
        session.close()
