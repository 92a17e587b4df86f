"""Authentication middleware for FastAPI."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hirebuddy.auth import policies
from hirebuddy.auth.models import UserAccount
from hirebuddy.auth.tokens import TokenService, token_service
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.errors import Forbidden, Unauthenticated

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def get_token_service(request: Request) -> TokenService:
    """Token service bound to the running app (falls back to the module singleton)."""
    return getattr(request.app.state, "token_service", None) or token_service


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    tokens: TokenService = Depends(get_token_service),
) -> UserAccount | None:
    """Get current authenticated user.

    Args:
        request: FastAPI request
        credentials: Bearer token
        tokens: Token service

    Returns:
        User account or None if not authenticated
    """
    if not credentials:
        return None

    user = tokens.get_user_from_token(credentials.credentials)

    if user:
        # Store user in request state for later use
        request.state.user = user
    else:
        logger.debug("bearer_token_rejected", path=request.url.path)

    return user


def require_auth(user: UserAccount | None = Depends(get_current_user)) -> UserAccount:
    """Require authentication - raises 401 if not authenticated.

    Raises:
        Unauthenticated: missing, invalid or expired bearer token
    """
    if not user:
        raise Unauthenticated("Not authenticated")
    return user


def require_admin(user: UserAccount = Depends(require_auth)) -> UserAccount:
    """Require admin privileges.

    Raises:
        Forbidden: authenticated user is not an admin
    """
    if not policies.is_admin(user):
        raise Forbidden("Admin access required")
    return user
