"""Per-client request throttling for credential endpoints (login, registration, reset)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Attempts per client address per window, e.g. "5/15minutes".
AUTH_RATE_LIMIT = settings.AUTH_RATE_LIMIT
