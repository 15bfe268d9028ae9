"""Pydantic request/response schemas."""

from app.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LogoutResponse,
    ProfileUpdateRequest,
    PublicUser,
    RegisterRequest,
    RegistrationResponse,
    ResetClaims,
    ResetPasswordRequest,
    ResetTokenStatus,
    TokenClaims,
    TokenResponse,
    UsersListResponse,
)
from app.schemas.health import HealthResponse

__all__ = [
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "ForgotPasswordResponse",
    "HealthResponse",
    "LoginRequest",
    "LogoutResponse",
    "ProfileUpdateRequest",
    "PublicUser",
    "RegisterRequest",
    "RegistrationResponse",
    "ResetClaims",
    "ResetPasswordRequest",
    "ResetTokenStatus",
    "TokenClaims",
    "TokenResponse",
    "UsersListResponse",
]
