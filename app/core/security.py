"""Password hashing and password-derived values."""

import hashlib
import hmac

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for email and password validation.
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128
DISPLAY_NAME_MAX_LEN = 255

# Compared against when no account matches, so a missing user costs one bcrypt check too.
_DUMMY_HASH = bcrypt.hashpw(b"no-such-account", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup (emails compare case-insensitively)."""
    return email.strip().lower()


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """
    Verify a plain password against a stored hash.

    bcrypt.checkpw compares in constant time. A missing hash still runs one
    comparison against a dummy hash and returns False.
    """
    pw_bytes = plain_password.encode("utf-8")[:72]
    if not hashed:
        bcrypt.checkpw(pw_bytes, _DUMMY_HASH)
        return False
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def burn_password_check(plain_password: str) -> None:
    """Spend the same work as a real password check; used when the account does not exist."""
    verify_password(plain_password, None)


def password_fingerprint(password_hash: str) -> str:
    """
    Short digest of the stored hash, embedded in reset tokens.

    Any password change alters the hash, so a reset token stops working once
    it has been used or the password was changed some other way.
    """
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:32]


def fingerprint_matches(password_hash: str, fingerprint: str) -> bool:
    return hmac.compare_digest(password_fingerprint(password_hash), fingerprint)
