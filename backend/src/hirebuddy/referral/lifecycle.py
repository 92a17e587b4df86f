"""Referral lifecycle: applying codes, completing and expiring referrals."""

import re
from datetime import timedelta
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hirebuddy.auth import policies
from hirebuddy.auth.models import UserAccount
from hirebuddy.clock import Clock, utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.codes import ReferralCodeIssuer, validate_format
from hirebuddy.referral.errors import (
    EmailAlreadyReferred,
    Forbidden,
    InvalidFormat,
    InvalidOrInactiveCode,
    ReferralExpired,
    ReferralNotFound,
    SelfReferralForbidden,
    StorageError,
)
from hirebuddy.referral.models import Referral, ReferralStatus
from hirebuddy.referral.rewards import PREMIUM_THRESHOLD, RewardAccrualEngine
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)

REFERRAL_TTL = timedelta(days=30)
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def normalize_email(email: str | None) -> str:
    """Lowercase and strip an email, rejecting malformed input."""
    normalized = (email or "").strip().lower()
    if not EMAIL_PATTERN.fullmatch(normalized):
        raise InvalidFormat("Invalid email format")
    return normalized


class ReferralLifecycleManager:
    """Moves referrals through pending -> completed | expired."""

    def __init__(
        self,
        database: Database | None = None,
        issuer: ReferralCodeIssuer | None = None,
        rewards: RewardAccrualEngine | None = None,
        clock: Clock = utcnow,
    ):
        self.database = database or db
        self.clock = clock
        self.issuer = issuer or ReferralCodeIssuer(self.database, clock=clock)
        self.rewards = rewards or RewardAccrualEngine(self.database, clock=clock)
        self.logger = get_logger(__name__)

    def _reject(self, error, **context):
        self.logger.info("referral_rejected", kind=error.kind, **context)
        return error

    # ==================== APPLY ====================

    def apply_code(self, code: str, referred_email: str) -> Referral:
        """Record that ``referred_email`` was referred with ``code``.

        Checks run in order and stop at the first failure; nothing is
        written unless all of them pass. The referrer's reward row is
        created in the same transaction as the referral.

        Args:
            code: Referral code (``HB-XXXXXXXX``)
            referred_email: Email of the person being referred

        Returns:
            The new pending referral

        Raises:
            InvalidFormat: Malformed code or email
            InvalidOrInactiveCode: No active code with this value
            SelfReferralForbidden: Email belongs to the code owner
            EmailAlreadyReferred: Email was referred before, by anyone
            StorageError: Persistence failed
        """
        if not validate_format(code):
            raise self._reject(InvalidFormat(), code=code)
        email = normalize_email(referred_email)

        try:
            with self.database.session() as session:
                code_row = self.issuer.find_active(session, code)
                if code_row is None:
                    raise self._reject(InvalidOrInactiveCode(), code=code)

                owner = session.get(UserAccount, code_row.user_id)
                if owner is None:
                    raise self._reject(InvalidOrInactiveCode("Referrer not found"), code=code)

                if (owner.email or "").strip().lower() == email:
                    raise self._reject(SelfReferralForbidden(), code=code, referrer_id=owner.id)

                already = session.query(Referral.id).filter(
                    Referral.referred_email == email
                ).first()
                if already:
                    raise self._reject(EmailAlreadyReferred(), code=code)

                now = self.clock()
                referral = Referral(
                    referrer_id=code_row.user_id,
                    referred_email=email,
                    referral_code_id=code_row.id,
                    status=ReferralStatus.PENDING.value,
                    created_at=now,
                    expires_at=now + REFERRAL_TTL,
                )
                session.add(referral)
                self.rewards.ensure_reward_row(session, code_row.user_id, now)
                session.flush()
        except IntegrityError as e:
            # Lost a race on the referred-email unique constraint
            if self._email_referred(email):
                raise self._reject(EmailAlreadyReferred(), code=code) from e
            self.logger.error("referral_apply_failed", code=code, error=str(e))
            raise StorageError() from e
        except SQLAlchemyError as e:
            self.logger.error("referral_apply_failed", code=code, error=str(e))
            raise StorageError() from e

        self.logger.info(
            "referral_applied",
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            expires_at=referral.expires_at.isoformat(),
        )
        return referral

    def _email_referred(self, email: str) -> bool:
        try:
            with self.database.session() as session:
                return session.query(Referral.id).filter(
                    Referral.referred_email == email
                ).first() is not None
        except SQLAlchemyError:
            return False

    # ==================== COMPLETE ====================

    def complete(self, referral_id: str, actor: policies.Actor | None = None) -> Referral:
        """Mark a pending referral completed and credit the referrer.

        The status change and the reward update share one transaction;
        if either fails both are rolled back. The status change is a
        conditional update on ``status = 'pending'`` so concurrent
        completions cannot both succeed.

        Args:
            referral_id: Referral ID
            actor: Calling user; when given must be the referrer or an admin

        Returns:
            The completed referral

        Raises:
            ReferralNotFound: Missing or no longer pending
            Forbidden: Actor may not manage this referral
            ReferralExpired: Past ``expires_at`` (status stays pending)
            StorageError: Persistence failed
        """
        try:
            with self.database.session() as session:
                referral = session.get(Referral, referral_id)
                if referral is None or referral.status != ReferralStatus.PENDING.value:
                    raise self._reject(ReferralNotFound(), referral_id=referral_id)

                if actor is not None and not policies.can_manage_referral(actor, referral):
                    raise self._reject(Forbidden(), referral_id=referral_id, actor_id=actor.id)

                now = self.clock()
                if referral.is_past_expiry(now):
                    raise self._reject(ReferralExpired(), referral_id=referral_id)

                result = session.execute(
                    update(Referral)
                    .where(
                        Referral.id == referral_id,
                        Referral.status == ReferralStatus.PENDING.value,
                    )
                    .values(status=ReferralStatus.COMPLETED.value, completed_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise self._reject(ReferralNotFound(), referral_id=referral_id)

                outcome = self.rewards.record_completion(session, referral.referrer_id, now)
                session.refresh(referral)
        except SQLAlchemyError as e:
            self.logger.error("referral_complete_failed", referral_id=referral_id, error=str(e))
            raise StorageError() from e

        self.logger.info(
            "referral_completed",
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            completed_referrals=outcome.reward.completed_referrals,
            premium_granted=outcome.reward.premium_granted,
        )
        return referral

    # ==================== EXPIRY ====================

    def expire_stale(self) -> int:
        """Rewrite pending referrals past ``expires_at`` to ``expired``.

        Run on demand by operators; ``complete`` does its own expiry check
        and does not depend on this having run.

        Returns:
            Number of referrals expired
        """
        now = self.clock()
        try:
            with self.database.session() as session:
                result = session.execute(
                    update(Referral)
                    .where(
                        Referral.status == ReferralStatus.PENDING.value,
                        Referral.expires_at < now,
                    )
                    .values(status=ReferralStatus.EXPIRED.value)
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount
        except SQLAlchemyError as e:
            self.logger.error("referral_expire_failed", error=str(e))
            raise StorageError() from e

        self.logger.info("referrals_expired", count=count)
        return count

    # ==================== READS ====================

    def get_referral(self, referral_id: str, actor: policies.Actor | None = None) -> Referral:
        try:
            with self.database.session() as session:
                referral = session.get(Referral, referral_id)
        except SQLAlchemyError as e:
            raise StorageError() from e

        if referral is None:
            raise ReferralNotFound("Referral not found")
        if actor is not None and not policies.can_view_referral(actor, referral):
            raise Forbidden()
        return referral

    def list_referrals(self, user_id: str) -> list[Referral]:
        """Referrals made by ``user_id``, newest first."""
        try:
            with self.database.session() as session:
                return session.query(Referral).filter(
                    Referral.referrer_id == user_id
                ).order_by(Referral.created_at.desc()).all()
        except SQLAlchemyError as e:
            raise StorageError() from e

    def get_stats_for_user(self, user_id: str, actor: policies.Actor | None = None) -> dict[str, Any]:
        """Aggregate referral statistics for a referrer.

        Pending referrals past their expiry are counted as expired.

        Args:
            user_id: Referrer user ID
            actor: Calling user; when given must be the user or an admin

        Returns:
            Dict with user, rewards, statistics and referrals sections
        """
        if actor is not None and not policies.can_view_rewards(actor, user_id):
            raise Forbidden()

        now = self.clock()
        code = self.issuer.get_code_record(user_id)
        reward = self.rewards.get_reward(user_id)
        referrals = self.list_referrals(user_id)

        counts = {status: 0 for status in ReferralStatus}
        for referral in referrals:
            counts[referral.effective_status(now)] += 1

        completed = reward.completed_referrals if reward else 0

        return {
            "user": {
                "id": user_id,
                "referral_code": code.code if code else None,
                "code_created_at": code.created_at if code else None,
            },
            "rewards": {
                "completed_referrals": completed,
                "premium_granted": bool(reward and reward.premium_granted),
                "premium_granted_at": reward.premium_granted_at if reward else None,
                "premium_expires_at": reward.premium_expires_at if reward else None,
            },
            "statistics": {
                "total_referrals": len(referrals),
                "completed_referrals": counts[ReferralStatus.COMPLETED],
                "pending_referrals": counts[ReferralStatus.PENDING],
                "expired_referrals": counts[ReferralStatus.EXPIRED],
                "referrals_needed_for_premium": max(0, PREMIUM_THRESHOLD - completed),
                "progress_percentage": min(100.0, completed / PREMIUM_THRESHOLD * 100),
            },
            "referrals": referrals,
        }
