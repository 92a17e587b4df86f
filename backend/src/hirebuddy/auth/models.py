"""Authentication models for user accounts."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String

from hirebuddy.clock import utcnow
from hirebuddy.storage.db import Base


def new_id() -> str:
    """Generate a UUID primary key."""
    return str(uuid.uuid4())


class UserAccount(Base):
    """User account mirrored from the upstream auth provider.

    Only the fields the referral system needs: identity, admin flag
    and whether the account may still authenticate.
    """
    __tablename__ = "user_accounts"

    id = Column(String(36), primary_key=True, default=new_id)

    # Identity
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<UserAccount(id={self.id}, email={self.email}, admin={self.is_admin})>"
