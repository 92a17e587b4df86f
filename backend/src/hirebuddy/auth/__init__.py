"""Authentication and authorization for HireBuddy."""

from hirebuddy.auth.middleware import get_current_user, require_admin, require_auth
from hirebuddy.auth.models import UserAccount
from hirebuddy.auth.tokens import TokenService, token_service

__all__ = [
    "UserAccount",
    "TokenService",
    "token_service",
    "get_current_user",
    "require_auth",
    "require_admin",
]
