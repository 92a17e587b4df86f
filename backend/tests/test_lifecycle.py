"""Tests for applying, completing and expiring referrals."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

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
from hirebuddy.referral.models import Referral, ReferralCode, ReferralReward, ReferralStatus
from hirebuddy.referral.rewards import RewardAccrualEngine
from hirebuddy.referral.service import ReferralService


@pytest.fixture
def code(service, referrer):
    return service.issuer.issue_or_get(referrer.id).code


def _referral_count(database) -> int:
    with database.session() as session:
        return session.query(Referral).count()


def _reward(database, user_id):
    with database.session() as session:
        return session.query(ReferralReward).filter(ReferralReward.user_id == user_id).first()


def test_apply_creates_pending_referral(service, database, referrer, code):
    referral = service.lifecycle.apply_code(code, "v@example.com")

    assert referral.status == ReferralStatus.PENDING.value
    assert referral.referrer_id == referrer.id
    assert referral.referred_email == "v@example.com"
    assert referral.expires_at == referral.created_at + timedelta(days=30)
    assert referral.completed_at is None

    reward = _reward(database, referrer.id)
    assert reward.completed_referrals == 0
    assert reward.premium_granted is False


def test_apply_normalizes_email(service, code):
    referral = service.lifecycle.apply_code(code, "  Friend@Example.COM ")
    assert referral.referred_email == "friend@example.com"


@pytest.mark.parametrize("bad_code", ["hb-aaaaaaaa", "HB-123", "HB-ZZZZZZZZ", ""])
def test_apply_rejects_malformed_code(service, database, bad_code):
    with pytest.raises(InvalidFormat):
        service.lifecycle.apply_code(bad_code, "v@example.com")
    assert _referral_count(database) == 0


def test_apply_rejects_malformed_email(service, code):
    with pytest.raises(InvalidFormat):
        service.lifecycle.apply_code(code, "not-an-email")


def test_apply_rejects_unknown_code(service):
    with pytest.raises(InvalidOrInactiveCode):
        service.lifecycle.apply_code("HB-DEADBEEF", "v@example.com")


def test_apply_rejects_inactive_code(service, database, code):
    with database.session() as session:
        session.query(ReferralCode).filter(ReferralCode.code == code).update({"is_active": False})

    with pytest.raises(InvalidOrInactiveCode):
        service.lifecycle.apply_code(code, "v@example.com")


def test_self_referral_forbidden(service, database, referrer, code):
    with pytest.raises(SelfReferralForbidden):
        service.lifecycle.apply_code(code, "U@Example.com")

    assert _referral_count(database) == 0
    assert _reward(database, referrer.id) is None


def test_email_referred_once_globally(service, make_user, code):
    """Scenario C plus a second referrer trying the same email."""
    service.lifecycle.apply_code(code, "v@example.com")

    with pytest.raises(EmailAlreadyReferred):
        service.lifecycle.apply_code(code, "v@example.com")

    other = make_user("other@example.com")
    other_code = service.issuer.issue_or_get(other.id).code
    with pytest.raises(EmailAlreadyReferred):
        service.lifecycle.apply_code(other_code, "V@example.com")


def test_validation_order_format_before_lookup(service, referrer, code):
    # Malformed code wins over a self-referral email
    with pytest.raises(InvalidFormat):
        service.lifecycle.apply_code("HB-xyz", referrer.email)


def test_scenario_a_complete(service, database, referrer, code, clock):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    clock.advance(days=3)

    completed = service.lifecycle.complete(referral.id)

    assert completed.status == ReferralStatus.COMPLETED.value
    assert completed.completed_at == clock.now
    reward = _reward(database, referrer.id)
    assert reward.completed_referrals == 1
    assert reward.premium_granted is False


def test_complete_unknown_referral(service):
    with pytest.raises(ReferralNotFound):
        service.lifecycle.complete("00000000-0000-0000-0000-000000000000")


def test_complete_twice_fails_without_double_count(service, database, referrer, code):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    service.lifecycle.complete(referral.id)

    with pytest.raises(ReferralNotFound):
        service.lifecycle.complete(referral.id)

    assert _reward(database, referrer.id).completed_referrals == 1


def test_complete_after_expiry_rejected(service, database, referrer, code, clock):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    clock.advance(days=30, seconds=1)

    with pytest.raises(ReferralExpired):
        service.lifecycle.complete(referral.id)

    stored = service.lifecycle.get_referral(referral.id)
    assert stored.status == ReferralStatus.PENDING.value
    assert _reward(database, referrer.id).completed_referrals == 0


def test_complete_exactly_at_expiry_allowed(service, code, clock):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    clock.advance(days=30)

    assert service.lifecycle.complete(referral.id).status == ReferralStatus.COMPLETED.value


def test_complete_authorization(service, make_user, admin, code):
    stranger = make_user("stranger@example.com")
    first = service.lifecycle.apply_code(code, "v1@example.com")
    second = service.lifecycle.apply_code(code, "v2@example.com")

    with pytest.raises(Forbidden):
        service.lifecycle.complete(first.id, actor=stranger)

    assert service.lifecycle.complete(first.id, actor=admin).status == "completed"
    assert service.lifecycle.complete(second.id).status == "completed"


def test_referrer_may_complete(service, referrer, code):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    assert service.lifecycle.complete(referral.id, actor=referrer).status == "completed"


class FailingRewards(RewardAccrualEngine):
    def record_completion(self, session, referrer_id, now):
        raise OperationalError("UPDATE referral_rewards", {}, Exception("disk I/O error"))


def test_reward_failure_rolls_back_completion(database, clock, referrer):
    service = ReferralService(database, clock=clock, rewards=FailingRewards(database, clock=clock))
    code = service.issuer.issue_or_get(referrer.id).code
    referral = service.lifecycle.apply_code(code, "v@example.com")

    with pytest.raises(StorageError):
        service.lifecycle.complete(referral.id)

    assert service.lifecycle.get_referral(referral.id).status == ReferralStatus.PENDING.value
    assert _reward(database, referrer.id).completed_referrals == 0


def test_expire_stale(service, code, clock):
    stale = service.lifecycle.apply_code(code, "old@example.com")
    clock.advance(days=20)
    fresh = service.lifecycle.apply_code(code, "new@example.com")
    clock.advance(days=11)

    assert service.lifecycle.expire_stale() == 1
    assert service.lifecycle.get_referral(stale.id).status == ReferralStatus.EXPIRED.value
    assert service.lifecycle.get_referral(fresh.id).status == ReferralStatus.PENDING.value

    with pytest.raises(ReferralNotFound):
        service.lifecycle.complete(stale.id)

    # Sweep is idempotent
    assert service.lifecycle.expire_stale() == 0


def test_get_referral_visibility(service, make_user, referrer, admin, code):
    referral = service.lifecycle.apply_code(code, "v@example.com")
    referred = make_user("v@example.com")
    stranger = make_user("stranger@example.com")

    assert service.lifecycle.get_referral(referral.id, actor=referrer).id == referral.id
    assert service.lifecycle.get_referral(referral.id, actor=referred).id == referral.id
    assert service.lifecycle.get_referral(referral.id, actor=admin).id == referral.id
    with pytest.raises(Forbidden):
        service.lifecycle.get_referral(referral.id, actor=stranger)


def test_stats_for_user(service, referrer, code, clock):
    done = service.lifecycle.apply_code(code, "a@example.com")
    service.lifecycle.apply_code(code, "b@example.com")
    service.lifecycle.complete(done.id)
    clock.advance(days=10)
    service.lifecycle.apply_code(code, "c@example.com")
    clock.advance(days=25)

    stats = service.lifecycle.get_stats_for_user(referrer.id)

    assert stats["user"]["referral_code"] == code
    assert stats["rewards"]["completed_referrals"] == 1
    assert stats["rewards"]["premium_granted"] is False
    assert stats["statistics"] == {
        "total_referrals": 3,
        "completed_referrals": 1,
        "pending_referrals": 1,
        "expired_referrals": 1,
        "referrals_needed_for_premium": 9,
        "progress_percentage": 10.0,
    }
    emails = [r.referred_email for r in stats["referrals"]]
    assert emails[0] == "c@example.com"
    assert sorted(emails[1:]) == ["a@example.com", "b@example.com"]


def test_stats_for_user_without_activity(service, referrer):
    stats = service.lifecycle.get_stats_for_user(referrer.id)

    assert stats["user"]["referral_code"] is None
    assert stats["rewards"]["completed_referrals"] == 0
    assert stats["statistics"]["total_referrals"] == 0
    assert stats["statistics"]["referrals_needed_for_premium"] == 10


def test_stats_forbidden_for_other_users(service, make_user, referrer):
    stranger = make_user("stranger@example.com")
    with pytest.raises(Forbidden):
        service.lifecycle.get_stats_for_user(referrer.id, actor=stranger)
