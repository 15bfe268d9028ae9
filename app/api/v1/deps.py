"""Shared route dependencies: store/token providers and the role guard."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.models.user import Role
from app.schemas.auth import TokenClaims
from app.services.auth_errors import (
    ForbiddenError,
    StoreUnavailableError,
    UnauthorizedError,
)
from app.services.guard import AuthorizationGuard
from app.services.tokens import TokenService
from app.services.user_store import UserStore

# auto_error=False: a missing or non-Bearer header reaches the guard as None.
security = HTTPBearer(auto_error=False)


def get_token_service(settings: Annotated[Settings, Depends(get_settings)]) -> TokenService:
    """Token service over the process-wide signing settings."""
    return TokenService.from_settings(settings)


def get_user_store(db: Annotated[Session, Depends(get_db)]) -> UserStore:
    return UserStore(db)


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=UnauthorizedError.default_message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def store_unavailable(settings: Settings) -> HTTPException:
    """503 telling the client to retry later; never reported as a credentials problem."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=StoreUnavailableError.default_message,
        headers={"Retry-After": str(settings.STORE_RETRY_AFTER_SEC)},
    )


def require_roles(*roles: Role) -> Callable[..., TokenClaims]:
    """
    Build a dependency that guards a route.

    With no roles any authenticated caller passes; otherwise the token's role
    must be one of roles. The route handler runs only after this returns the
    claims; exceptions the handler raises are not intercepted here.
    """
    required = frozenset(roles) or None

    def guard_dependency(
        settings: Annotated[Settings, Depends(get_settings)],
        tokens: Annotated[TokenService, Depends(get_token_service)],
        store: Annotated[UserStore, Depends(get_user_store)],
        credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    ) -> TokenClaims:
        guard = AuthorizationGuard(required)
        token = credentials.credentials if credentials else None

        def is_revoked(claims: TokenClaims) -> bool:
            return store.is_token_revoked(claims.token_id)

        try:
            return guard.authorize(
                token,
                tokens,
                is_revoked=is_revoked if settings.TOKEN_REVOCATION_ENABLED else None,
            )
        except UnauthorizedError as e:
            raise unauthorized() from e
        except ForbiddenError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message) from e
        except StoreUnavailableError as e:
            raise store_unavailable(settings) from e

    return guard_dependency


# Any authenticated account.
get_current_claims = require_roles()
require_admin = require_roles(Role.ADMIN)
