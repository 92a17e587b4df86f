"""Referral reporting: admin summary, system statistics, user progress."""

from typing import Any

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from hirebuddy.auth import policies
from hirebuddy.auth.models import UserAccount
from hirebuddy.clock import Clock, utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.errors import Forbidden, StorageError
from hirebuddy.referral.models import Referral, ReferralReward, ReferralStatus
from hirebuddy.referral.rewards import PREMIUM_THRESHOLD
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)

# (minimum completed referrals, label), highest first
PROGRESS_LABELS = [
    (PREMIUM_THRESHOLD, "Premium Unlocked"),
    (7, "Almost There!"),
    (5, "Halfway!"),
    (2, "Getting Started"),
    (0, "Just Beginning"),
]


def progress_label(completed: int) -> str:
    for minimum, label in PROGRESS_LABELS:
        if completed >= minimum:
            return label
    return PROGRESS_LABELS[-1][1]


class ReferralReporting:
    """Read-only aggregate views over referrals and rewards."""

    def __init__(self, database: Database | None = None, clock: Clock = utcnow):
        self.database = database or db
        self.clock = clock
        self.logger = get_logger(__name__)

    def _status_columns(self, now):
        pending = Referral.status == ReferralStatus.PENDING.value
        live_pending = and_(pending, Referral.expires_at >= now)
        expired = or_(
            Referral.status == ReferralStatus.EXPIRED.value,
            and_(pending, Referral.expires_at < now),
        )
        completed = Referral.status == ReferralStatus.COMPLETED.value
        return (
            func.count(Referral.id).label("total"),
            func.coalesce(func.sum(case((completed, 1), else_=0)), 0).label("completed"),
            func.coalesce(func.sum(case((live_pending, 1), else_=0)), 0).label("pending"),
            func.coalesce(func.sum(case((expired, 1), else_=0)), 0).label("expired"),
        )

    def get_user_progress(self, user_id: str, actor: policies.Actor | None = None) -> dict[str, Any]:
        """Progress toward premium for one user."""
        if actor is not None and not policies.can_view_rewards(actor, user_id):
            raise Forbidden()

        try:
            with self.database.session() as session:
                completed = session.execute(
                    select(ReferralReward.completed_referrals).where(ReferralReward.user_id == user_id)
                ).scalar_one_or_none() or 0
        except SQLAlchemyError as e:
            raise StorageError() from e

        return {
            "user_id": user_id,
            "completed_referrals": completed,
            "progress_status": progress_label(completed),
            "referrals_needed_for_premium": max(0, PREMIUM_THRESHOLD - completed),
        }

    def get_admin_summary(self, actor: policies.Actor | None = None) -> list[dict[str, Any]]:
        """Per-user referral summary, most completed referrals first.

        Args:
            actor: Calling user; when given must be an admin

        Returns:
            One dict per user account
        """
        if actor is not None and not policies.is_admin(actor):
            raise Forbidden("Admin access required")

        now = self.clock()
        counts = (
            select(Referral.referrer_id.label("user_id"), *self._status_columns(now))
            .group_by(Referral.referrer_id)
            .subquery()
        )

        stmt = (
            select(
                UserAccount.id,
                UserAccount.email,
                ReferralReward.completed_referrals,
                ReferralReward.premium_granted,
                ReferralReward.premium_granted_at,
                ReferralReward.premium_expires_at,
                counts.c.total,
                counts.c.completed,
                counts.c.pending,
                counts.c.expired,
            )
            .outerjoin(ReferralReward, ReferralReward.user_id == UserAccount.id)
            .outerjoin(counts, counts.c.user_id == UserAccount.id)
            .order_by(
                func.coalesce(ReferralReward.completed_referrals, 0).desc(),
                UserAccount.email,
            )
        )

        try:
            with self.database.session() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as e:
            self.logger.error("admin_summary_failed", error=str(e))
            raise StorageError() from e

        return [
            {
                "user_id": row.id,
                "email": row.email,
                "completed_referrals": row.completed_referrals or 0,
                "premium_granted": bool(row.premium_granted),
                "premium_granted_at": row.premium_granted_at,
                "premium_expires_at": row.premium_expires_at,
                "total_referrals": row.total or 0,
                "completed_count": int(row.completed or 0),
                "pending_count": int(row.pending or 0),
                "expired_count": int(row.expired or 0),
            }
            for row in rows
        ]

    def get_system_statistics(self, actor: policies.Actor | None = None) -> dict[str, int]:
        """System-wide referral totals."""
        if actor is not None and not policies.is_admin(actor):
            raise Forbidden("Admin access required")

        now = self.clock()
        stmt = select(
            *self._status_columns(now),
            func.count(func.distinct(Referral.referrer_id)).label("unique_referrers"),
            func.count(func.distinct(Referral.referred_email)).label("unique_referred_emails"),
        )

        try:
            with self.database.session() as session:
                row = session.execute(stmt).one()
        except SQLAlchemyError as e:
            self.logger.error("system_statistics_failed", error=str(e))
            raise StorageError() from e

        return {
            "total_referrals": int(row.total or 0),
            "completed_referrals": int(row.completed or 0),
            "pending_referrals": int(row.pending or 0),
            "expired_referrals": int(row.expired or 0),
            "unique_referrers": int(row.unique_referrers or 0),
            "unique_referred_emails": int(row.unique_referred_emails or 0),
        }
