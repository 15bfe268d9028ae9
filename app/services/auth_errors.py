"""Typed failures raised by the issuer, verifier, guard and user store."""


class AuthError(Exception):
    """Base class for authentication and authorization failures."""

    default_message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    """Email unknown or password wrong. One error for both so callers cannot tell which."""

    default_message = "Invalid email or password."


class MissingCredentialsError(AuthError):
    """No bearer token presented in the Authorization header."""

    default_message = "Missing or malformed Authorization header."


class MalformedTokenError(AuthError):
    """Token cannot be parsed into valid segments and claims."""

    default_message = "Malformed token."


class BadSignatureError(AuthError):
    """Token signature does not verify against the current secret."""

    default_message = "Token signature is invalid."


class TokenExpiredError(AuthError):
    """Check time is outside the token's [issued-at, expires-at) window."""

    default_message = "Token has expired."


class TokenRevokedError(AuthError):
    """Token id was revoked at logout."""

    default_message = "Token has been revoked."


class UnauthorizedError(AuthError):
    """Uniform outward signal for every authentication-stage failure."""

    default_message = "Invalid or missing credentials."


class ForbiddenError(AuthError):
    """Authenticated, but the role is not allowed for the operation."""

    default_message = "Insufficient role for this operation."


class StoreUnavailableError(AuthError):
    """User store unreachable or timed out; the caller should retry with backoff."""

    default_message = "User store is temporarily unavailable."


class EmailAlreadyRegisteredError(AuthError):
    """Another active account already uses this email."""

    default_message = "Unable to register with the supplied details."


class IncorrectPasswordError(AuthError):
    """Current password supplied to a password change does not match."""

    default_message = "Current password is incorrect."


class InvalidResetTokenError(AuthError):
    """Reset token is unusable: bad, expired, already used, or its account is gone."""

    default_message = "Invalid or expired reset token."
