"""Referral service wiring codes, lifecycle, rewards and reporting."""

from hirebuddy.clock import Clock, utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.codes import ReferralCodeIssuer
from hirebuddy.referral.lifecycle import ReferralLifecycleManager
from hirebuddy.referral.reporting import ReferralReporting
from hirebuddy.referral.rewards import RewardAccrualEngine
from hirebuddy.settings import settings
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)


class ReferralService:
    """Referral components sharing one database and clock."""

    def __init__(
        self,
        database: Database | None = None,
        clock: Clock = utcnow,
        issuer: ReferralCodeIssuer | None = None,
        rewards: RewardAccrualEngine | None = None,
    ):
        self.database = database or db
        self.clock = clock
        self.issuer = issuer or ReferralCodeIssuer(self.database, clock=clock)
        self.rewards = rewards or RewardAccrualEngine(self.database, clock=clock)
        self.lifecycle = ReferralLifecycleManager(
            self.database,
            issuer=self.issuer,
            rewards=self.rewards,
            clock=clock,
        )
        self.reporting = ReferralReporting(self.database, clock=clock)

    def share_link(self, code: str) -> str:
        """Public signup link for a referral code."""
        return f"{settings.referral_link_base_url.rstrip('/')}/ref/{code}"


# Singleton instance
referral_service = ReferralService()
