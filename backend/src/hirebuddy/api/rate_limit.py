"""Rate limiting configuration for the HireBuddy API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from hirebuddy.settings import settings

# Single shared limiter instance - disabled unless configured (production by default)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.rate_limiting_active,
)
