"""Request/response schemas for auth and account endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.security import (
    DISPLAY_NAME_MAX_LEN,
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from app.models.user import Role

# Roles a visitor may pick at sign-up; admins are created with app.scripts.create_user.
SELF_SERVICE_ROLES = (Role.OWNER, Role.PROVIDER, Role.GUEST)


class LoginRequest(BaseModel):
    """Credentials for login. No password policy here: a wrong password is just wrong."""

    email: str = Field(..., min_length=1, max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class RegisterRequest(BaseModel):
    """New account details."""

    email: EmailStr = Field(..., description="Email (case-insensitive, unique)")
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    display_name: str = Field(..., min_length=1, max_length=DISPLAY_NAME_MAX_LEN)
    role: Role = Field(default=Role.OWNER, description="owner, provider or guest")
    phone: str | None = Field(default=None, max_length=20)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v not in SELF_SERVICE_ROLES:
            raise ValueError("role must be one of owner, provider, guest")
        return v

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("display_name must not be blank")
        return v.strip()


class PublicUser(BaseModel):
    """Public-safe projection of an account (never includes the password hash)."""

    id: UUID
    email: str
    display_name: str
    role: Role
    phone: str | None = None
    email_verified: bool = False
    phone_verified: bool = False
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    class Config:
        from_attributes = True


class TokenClaims(BaseModel):
    """Claims of a verified access token. Built once by the verifier; never re-parsed downstream."""

    sub: str = Field(..., min_length=1, description="Subject: the account id")
    role: Role
    issued_at: datetime
    expires_at: datetime
    token_id: str | None = Field(default=None, description="jti; used for revocation")

    class Config:
        frozen = True


class ResetClaims(BaseModel):
    """Claims of a verified password-reset token."""

    sub: str = Field(..., min_length=1)
    fingerprint: str = Field(..., min_length=1, description="Digest of the password hash at issue time")
    issued_at: datetime
    expires_at: datetime

    class Config:
        frozen = True


class TokenResponse(BaseModel):
    """JWT access token returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_at: datetime = Field(..., description="When the token stops being accepted")
    user: PublicUser


class RegistrationResponse(BaseModel):
    """Same body whether or not the email was already taken."""

    detail: str


class LogoutResponse(BaseModel):
    """Outcome of logout. revoked=False means the token stays valid until expires_at."""

    revoked: bool
    expires_at: datetime
    detail: str


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile; omitted fields are left alone."""

    display_name: str | None = Field(default=None, min_length=1, max_length=DISPLAY_NAME_MAX_LEN)
    phone: str | None = Field(default=None, max_length=20)


class ChangePasswordRequest(BaseModel):
    """Current password plus its replacement."""

    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[PublicUser]


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=EMAIL_MAX_LEN)


class ForgotPasswordResponse(BaseModel):
    """Identical for known and unknown emails. reset_token is only set in local development."""

    detail: str
    reset_token: str | None = None


class ResetTokenStatus(BaseModel):
    valid: bool
    expires_at: datetime


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
