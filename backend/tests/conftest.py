"""Shared fixtures: a throwaway sqlite database, a controllable clock, seeded users."""

from datetime import datetime, timedelta

import pytest

from hirebuddy.auth.tokens import TokenService
from hirebuddy.referral.service import ReferralService
from hirebuddy.storage.db import Database


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'referrals.db'}")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def service(database, clock):
    return ReferralService(database, clock=clock)


@pytest.fixture
def tokens(database):
    return TokenService(database, secret_key="test-secret-key-for-referral-tests-0001")


@pytest.fixture
def make_user(tokens):
    def _make(email: str, is_admin: bool = False):
        return tokens.sync_user(email=email, is_admin=is_admin)

    return _make


@pytest.fixture
def referrer(make_user):
    return make_user("u@example.com")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", is_admin=True)
