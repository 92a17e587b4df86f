"""Tests for tokens and authorization predicates."""

from dataclasses import dataclass
from datetime import timedelta

from hirebuddy.auth import policies
from hirebuddy.auth.tokens import TokenService


@dataclass
class FakeActor:
    id: str
    email: str
    is_admin: bool = False


@dataclass
class FakeReferral:
    referrer_id: str
    referred_email: str


def test_token_round_trip(tokens, referrer):
    token = tokens.create_access_token(referrer)

    user = tokens.get_user_from_token(token)

    assert user.id == referrer.id
    assert user.email == "u@example.com"


def test_token_rejected_with_other_secret(database, tokens, referrer):
    token = tokens.create_access_token(referrer)
    other = TokenService(database, secret_key="another-secret-key-0000000000000000")

    assert other.get_user_from_token(token) is None


def test_expired_token_rejected(tokens, referrer):
    token = tokens.create_access_token(referrer, expires_delta=timedelta(seconds=-10))
    assert tokens.get_user_from_token(token) is None


def test_inactive_user_rejected(tokens, database, referrer):
    token = tokens.create_access_token(referrer)
    with database.session() as session:
        session.get(type(referrer), referrer.id).is_active = False

    assert tokens.get_user_from_token(token) is None


def test_sync_user_updates_existing(tokens):
    created = tokens.sync_user(email="Someone@Example.com", user_id="11111111-1111-1111-1111-111111111111")
    updated = tokens.sync_user(email="someone@example.com", name="Someone", is_admin=True)

    assert created.email == "someone@example.com"
    assert updated.id == created.id
    assert updated.is_admin is True
    assert tokens.get_user_by_id(created.id).name == "Someone"


def test_referral_policies():
    referrer = FakeActor("r", "r@example.com")
    referred = FakeActor("v", "V@Example.com")
    admin = FakeActor("a", "a@example.com", is_admin=True)
    stranger = FakeActor("s", "s@example.com")
    referral = FakeReferral(referrer_id="r", referred_email="v@example.com")

    assert policies.can_view_referral(referrer, referral)
    assert policies.can_view_referral(referred, referral)
    assert policies.can_view_referral(admin, referral)
    assert not policies.can_view_referral(stranger, referral)
    assert not policies.can_view_referral(None, referral)

    assert policies.can_manage_referral(referrer, referral)
    assert policies.can_manage_referral(admin, referral)
    assert not policies.can_manage_referral(referred, referral)


def test_reward_and_code_policies():
    owner = FakeActor("o", "o@example.com")
    admin = FakeActor("a", "a@example.com", is_admin=True)
    stranger = FakeActor("s", "s@example.com")

    @dataclass
    class Code:
        user_id: str

    assert policies.can_view_rewards(owner, "o")
    assert policies.can_view_rewards(admin, "o")
    assert not policies.can_view_rewards(stranger, "o")
    assert policies.can_view_code(owner, Code("o"))
    assert not policies.can_view_code(stranger, Code("o"))
    assert not policies.is_admin(None)
