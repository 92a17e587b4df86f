"""Access token handling and user lookup.

Tokens are issued by the upstream auth provider and signed with the
shared JWT secret. ``sub`` is the user id, ``email`` the user's email.
"""

from datetime import timedelta
from typing import Any

from jose import JWTError, jwt

from hirebuddy.auth.models import UserAccount, new_id
from hirebuddy.clock import utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.settings import settings
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)


class TokenService:
    """Verifies access tokens and resolves them to user accounts."""

    def __init__(
        self,
        database: Database | None = None,
        secret_key: str | None = None,
        algorithm: str | None = None,
    ):
        self.database = database or db
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.logger = get_logger(__name__)

    # ==================== TOKENS ====================

    def create_access_token(
        self,
        user: UserAccount,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create JWT access token.

        Args:
            user: User account
            expires_delta: Optional expiration time

        Returns:
            JWT token string
        """
        if expires_delta is None:
            expires_delta = timedelta(hours=settings.jwt_expire_hours)

        now = utcnow()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "exp": now + expires_delta,
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode JWT token.

        Args:
            token: JWT token string

        Returns:
            Token payload or None if invalid
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            self.logger.debug("token_verification_failed", error=str(e))
            return None

    def get_user_from_token(self, token: str) -> UserAccount | None:
        """Get user from JWT token.

        Args:
            token: JWT token string

        Returns:
            Active user account or None
        """
        payload = self.verify_token(token)
        if not payload:
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        return self.get_user_by_id(str(user_id))

    # ==================== USERS ====================

    def get_user_by_id(self, user_id: str) -> UserAccount | None:
        """Get an active user by ID."""
        with self.database.session() as session:
            return session.query(UserAccount).filter(
                UserAccount.id == user_id,
                UserAccount.is_active == True,  # noqa: E712
            ).first()

    def sync_user(
        self,
        email: str,
        user_id: str | None = None,
        name: str | None = None,
        is_admin: bool = False,
    ) -> UserAccount:
        """Create or update the local mirror of a provider user.

        Args:
            email: User email
            user_id: Provider user ID (generated when omitted)
            name: Optional display name
            is_admin: Admin flag

        Returns:
            The stored user account
        """
        email = email.strip().lower()

        with self.database.session() as session:
            user = None
            if user_id:
                user = session.get(UserAccount, user_id)
            if user is None:
                user = session.query(UserAccount).filter(UserAccount.email == email).first()

            created = user is None
            if created:
                user = UserAccount(
                    id=user_id or new_id(),
                    email=email,
                    name=name,
                    is_admin=is_admin,
                    is_active=True,
                )
                session.add(user)
            else:
                user.email = email
                user.is_admin = is_admin
                if name is not None:
                    user.name = name

            session.flush()
            self.logger.info("user_synced", user_id=user.id, created=created)
            return user


# Singleton instance
token_service = TokenService()
