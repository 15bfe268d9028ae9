"""Account endpoints: own profile and password, plus admin user management."""

from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.v1.deps import (
    get_current_claims,
    get_user_store,
    require_admin,
    store_unavailable,
    unauthorized,
)
from app.core.config import Settings, get_settings
from app.models import Role, User
from app.schemas.auth import (
    ChangePasswordRequest,
    ProfileUpdateRequest,
    PublicUser,
    TokenClaims,
    UsersListResponse,
)
from app.services.auth import change_password
from app.services.auth_errors import IncorrectPasswordError, StoreUnavailableError
from app.services.user_store import UserStore

router = APIRouter()


def _load_current_user(store: UserStore, claims: TokenClaims, settings: Settings) -> User:
    """Re-fetch the token's account; a token for a deactivated account gets 401."""
    try:
        user = store.find_by_id(claims.sub)
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    if user is None:
        raise unauthorized()
    return user


@router.get("/me", response_model=PublicUser)
def read_me(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PublicUser:
    """Current account, read fresh from the store (the token carries only id and role)."""
    return PublicUser.model_validate(_load_current_user(store, claims, settings))


@router.patch("/me", response_model=PublicUser)
def update_me(
    body: ProfileUpdateRequest,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PublicUser:
    user = _load_current_user(store, claims, settings)
    try:
        user = store.update_profile(user, display_name=body.display_name, phone=body.phone)
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return PublicUser.model_validate(user)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def update_my_password(
    body: ChangePasswordRequest,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Change password. Tokens issued before the change stay valid until they expire."""
    user = _load_current_user(store, claims, settings)
    try:
        change_password(store, user, body.current_password, body.new_password)
    except IncorrectPasswordError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """
    Deactivate the caller's own account. The row is kept for bookings and reviews.

    Administrators are refused so the last admin cannot lock everyone out.
    """
    if claims.role == Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot deactivate their own account.",
        )
    try:
        found = store.deactivate(claims.sub, datetime.now(UTC))
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    if not found:
        raise unauthorized()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[TokenClaims, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UsersListResponse:
    """List active accounts (admin only)."""
    try:
        users = store.list_active()
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return UsersListResponse(users=[PublicUser.model_validate(u) for u in users])


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(
    user_id: UUID,
    admin: Annotated[TokenClaims, Depends(require_admin)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Soft-delete an account (admin only). The row is kept for bookings and reviews."""
    if admin.sub == str(user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot deactivate their own account.",
        )
    try:
        found = store.deactivate(user_id, datetime.now(UTC))
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
