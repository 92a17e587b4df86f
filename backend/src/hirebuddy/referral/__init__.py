"""Referral rewards for HireBuddy.

- A user shares one ``HB-XXXXXXXX`` code
- Each referred email can be referred once, ever, and expires after 30 days
- 10 completed referrals grant the referrer 30 days of premium
"""

from hirebuddy.referral.models import Referral, ReferralCode, ReferralReward, ReferralStatus
from hirebuddy.referral.service import ReferralService, referral_service

__all__ = [
    "ReferralCode",
    "Referral",
    "ReferralReward",
    "ReferralStatus",
    "ReferralService",
    "referral_service",
]
