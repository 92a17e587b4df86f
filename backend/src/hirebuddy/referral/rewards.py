"""Reward accrual for completed referrals."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hirebuddy.auth.models import new_id
from hirebuddy.clock import Clock, utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.errors import StorageError
from hirebuddy.referral.models import ReferralReward
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)

PREMIUM_THRESHOLD = 10  # Completed referrals needed for premium
PREMIUM_DURATION = timedelta(days=30)


@dataclass(frozen=True)
class RewardUpdate:
    """Reward state right after a completion was recorded."""
    reward: ReferralReward
    premium_newly_granted: bool


class RewardAccrualEngine:
    """Counts completed referrals and grants premium at the threshold.

    Every method that takes a ``session`` runs inside the caller's
    transaction and never commits on its own.
    """

    def __init__(self, database: Database | None = None, clock: Clock = utcnow):
        self.database = database or db
        self.clock = clock
        self.logger = get_logger(__name__)

    def ensure_reward_row(self, session: Session, user_id: str, now: datetime) -> None:
        """Create the user's reward row with a zero count if absent."""
        values = {
            "id": new_id(),
            "user_id": user_id,
            "completed_referrals": 0,
            "premium_granted": False,
            "created_at": now,
            "updated_at": now,
        }
        dialect = session.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            exists = session.execute(
                select(ReferralReward.id).where(ReferralReward.user_id == user_id)
            ).first()
            if not exists:
                session.add(ReferralReward(**values))
                session.flush()
            return

        stmt = insert(ReferralReward).values(**values).on_conflict_do_nothing(
            index_elements=["user_id"]
        )
        session.execute(stmt)

    def record_completion(self, session: Session, referrer_id: str, now: datetime) -> RewardUpdate:
        """Apply one completed referral to the referrer's reward row.

        The count is bumped with a relative update, then premium is granted
        by a conditional update that only matches while the flag is still
        false, so the grant happens once no matter how many completions
        cross the threshold.

        Args:
            session: Open session of the completing transaction
            referrer_id: Referrer user ID
            now: Completion time

        Returns:
            RewardUpdate
        """
        self.ensure_reward_row(session, referrer_id, now)

        bumped = session.execute(
            update(ReferralReward)
            .where(ReferralReward.user_id == referrer_id)
            .values(
                completed_referrals=ReferralReward.completed_referrals + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise StorageError("Reward row missing for referrer")

        granted = session.execute(
            update(ReferralReward)
            .where(
                ReferralReward.user_id == referrer_id,
                ReferralReward.completed_referrals >= PREMIUM_THRESHOLD,
                ReferralReward.premium_granted == False,  # noqa: E712
            )
            .values(
                premium_granted=True,
                premium_granted_at=now,
                premium_expires_at=now + PREMIUM_DURATION,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        reward = session.execute(
            select(ReferralReward)
            .where(ReferralReward.user_id == referrer_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

        newly_granted = granted.rowcount == 1
        if newly_granted:
            self.logger.info(
                "premium_granted",
                user_id=referrer_id,
                completed_referrals=reward.completed_referrals,
                expires_at=reward.premium_expires_at.isoformat(),
            )

        return RewardUpdate(reward=reward, premium_newly_granted=newly_granted)

    def get_reward(self, user_id: str) -> ReferralReward | None:
        try:
            with self.database.session() as session:
                return session.query(ReferralReward).filter(
                    ReferralReward.user_id == user_id
                ).first()
        except SQLAlchemyError as e:
            raise StorageError() from e

    def has_premium_access(self, user_id: str) -> bool:
        """Check whether the user's referral premium is granted and unexpired."""
        reward = self.get_reward(user_id)
        if not reward or not reward.premium_granted:
            return False

        if reward.premium_expires_at and reward.premium_expires_at <= self.clock():
            return False

        return True
