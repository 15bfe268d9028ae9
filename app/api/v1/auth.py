"""JWT login, registration, logout and password reset."""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import sessionmaker

from app.api.v1.deps import (
    get_current_claims,
    get_token_service,
    get_user_store,
    store_unavailable,
)
from app.core.config import Settings, get_settings
from app.core.database import get_session_factory
from app.core.rate_limit import AUTH_RATE_LIMIT, limiter
from app.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    RegistrationResponse,
    ResetPasswordRequest,
    ResetTokenStatus,
    TokenClaims,
    TokenResponse,
)
from app.services.auth import (
    authenticate,
    check_reset_token,
    record_last_login,
    register_user,
    request_password_reset,
    reset_password,
)
from app.services.auth_errors import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    StoreUnavailableError,
)
from app.services.tokens import TokenService
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)

router = APIRouter()

REGISTRATION_RECEIVED = "Registration received. If the details are valid you can now log in."
RESET_REQUESTED = "If an account exists for that email, password reset instructions have been sent."


@router.post("/login", response_model=TokenResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    background_tasks: BackgroundTasks,
    store: Annotated[UserStore, Depends(get_user_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    try:
        result = authenticate(store, tokens, body.email, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e

    # Runs after the response is sent; failures are logged, never returned.
    background_tasks.add_task(
        record_last_login, session_factory, result.user.id, result.claims.issued_at
    )
    return TokenResponse(
        access_token=result.token,
        token_type="bearer",
        expires_at=result.claims.expires_at,
        user=result.user,
    )


@router.post("/register", response_model=RegistrationResponse, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(AUTH_RATE_LIMIT)
def register(
    request: Request,
    body: RegisterRequest,
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RegistrationResponse:
    """
    Create an owner, provider or guest account. Log in afterwards to get a token.

    A taken email gets the same 202 and body as a new one, so the endpoint
    cannot be used to discover registered emails.
    """
    try:
        register_user(
            store,
            email=body.email,
            password=body.password,
            display_name=body.display_name,
            role=body.role,
            phone=body.phone,
        )
    except EmailAlreadyRegisteredError:
        logger.info("Registration for an already registered email ignored")
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return RegistrationResponse(detail=REGISTRATION_RECEIVED)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    store: Annotated[UserStore, Depends(get_user_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LogoutResponse:
    """
    End the session. Clients must discard the token either way.

    Unless TOKEN_REVOCATION_ENABLED is set, logout is advisory and the token
    remains valid until it expires.
    """
    if not settings.TOKEN_REVOCATION_ENABLED or not claims.token_id:
        return LogoutResponse(
            revoked=False,
            expires_at=claims.expires_at,
            detail="Logged out. The token remains valid until it expires.",
        )
    try:
        store.revoke_token(claims.token_id, claims.sub, claims.expires_at)
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return LogoutResponse(
        revoked=True,
        expires_at=claims.expires_at,
        detail="Logged out. The token has been revoked.",
    )


@router.post("/forgot-password", response_model=ForgotPasswordResponse, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(AUTH_RATE_LIMIT)
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    store: Annotated[UserStore, Depends(get_user_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ForgotPasswordResponse:
    """
    Start a password reset. The answer is the same whether or not the email is known.

    The reset token is handed to the notification service for delivery; with
    RESET_TOKEN_IN_RESPONSE (local development) it is also returned here.
    """
    try:
        token = request_password_reset(store, tokens, body.email)
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return ForgotPasswordResponse(
        detail=RESET_REQUESTED,
        reset_token=token if settings.RESET_TOKEN_IN_RESPONSE else None,
    )


@router.get("/validate-reset-token", response_model=ResetTokenStatus)
def validate_reset_token(
    token: Annotated[str, Query(min_length=1)],
    store: Annotated[UserStore, Depends(get_user_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ResetTokenStatus:
    """Let the reset form check a token before asking for the new password."""
    try:
        _, claims = check_reset_token(store, tokens, token)
    except InvalidResetTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return ResetTokenStatus(valid=True, expires_at=claims.expires_at)


@router.post("/reset-password", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(AUTH_RATE_LIMIT)
def post_reset_password(
    request: Request,
    body: ResetPasswordRequest,
    store: Annotated[UserStore, Depends(get_user_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Set a new password with a reset token. Access tokens issued earlier stay valid."""
    try:
        reset_password(store, tokens, body.token, body.new_password)
    except InvalidResetTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except StoreUnavailableError as e:
        raise store_unavailable(settings) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
