"""Referral system database models."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import relationship

from hirebuddy.auth.models import new_id
from hirebuddy.clock import utcnow
from hirebuddy.storage.db import Base


class ReferralStatus(str, Enum):
    """Referral lifecycle states. ``completed`` and ``expired`` are terminal."""
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ReferralCode(Base):
    """Shareable referral code (``HB-`` + 8 uppercase hex chars).

    A user holds at most one active code; code strings are globally unique.
    Codes are never deleted.
    """
    __tablename__ = "user_referral_codes"
    __table_args__ = (
        Index(
            "uq_referral_codes_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(11), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    referrals = relationship("Referral", back_populates="referral_code")

    def __repr__(self):
        return f"<ReferralCode(code={self.code}, user_id={self.user_id}, active={self.is_active})>"


class Referral(Base):
    """A referred email waiting for (or past) onboarding.

    One row per referred email, system-wide.
    """
    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="referral_expires_future"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'expired')",
            name="referral_status_valid",
        ),
        Index("ix_referrals_status_created", "status", "created_at"),
        Index("ix_referrals_status_expires", "status", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    referrer_id = Column(String(36), ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_email = Column(String(255), unique=True, nullable=False)
    referral_code_id = Column(String(36), ForeignKey("user_referral_codes.id"), nullable=False)

    status = Column(String(16), default=ReferralStatus.PENDING.value, nullable=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    # Relationships
    referral_code = relationship("ReferralCode", back_populates="referrals")

    def is_past_expiry(self, now) -> bool:
        return now > self.expires_at

    def effective_status(self, now) -> ReferralStatus:
        """Status with lazy expiry applied to stale pending rows."""
        status = ReferralStatus(self.status)
        if status is ReferralStatus.PENDING and self.is_past_expiry(now):
            return ReferralStatus.EXPIRED
        return status

    def __repr__(self):
        return f"<Referral(id={self.id}, referrer={self.referrer_id}, status={self.status})>"


class ReferralReward(Base):
    """Per-referrer reward counter and premium grant."""
    __tablename__ = "referral_rewards"
    __table_args__ = (
        CheckConstraint("completed_referrals >= 0", name="reward_count_non_negative"),
        Index("ix_referral_rewards_premium", "premium_granted", "premium_granted_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False, unique=True)

    completed_referrals = Column(Integer, default=0, nullable=False)
    premium_granted = Column(Boolean, default=False, nullable=False)
    premium_granted_at = Column(DateTime, nullable=True)
    premium_expires_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return (
            f"<ReferralReward(user_id={self.user_id}, completed={self.completed_referrals}, "
            f"premium={self.premium_granted})>"
        )
