"""Racing callers against the same referral rows.

Each test releases eight threads at once through a barrier and checks
that the database constraints and conditional updates leave exactly one
winner.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from hirebuddy.referral.errors import EmailAlreadyReferred, ReferralError, ReferralNotFound
from hirebuddy.referral.models import Referral, ReferralCode, ReferralStatus

WORKERS = 8


def race(fn, workers=WORKERS):
    """Run ``fn`` from ``workers`` threads released together.

    Returns one entry per thread: the return value, or the ReferralError raised.
    """
    barrier = threading.Barrier(workers)

    def _run():
        barrier.wait(timeout=10)
        try:
            return fn()
        except ReferralError as e:
            return e

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_run) for _ in range(workers)]
        return [f.result(timeout=60) for f in futures]


def _split(outcomes):
    errors = [o for o in outcomes if isinstance(o, ReferralError)]
    successes = [o for o in outcomes if not isinstance(o, ReferralError)]
    return successes, errors


def test_concurrent_apply_same_email(service, database, referrer):
    code = service.issuer.issue_or_get(referrer.id).code

    outcomes = race(lambda: service.lifecycle.apply_code(code, "v@example.com"))

    successes, errors = _split(outcomes)
    assert len(successes) == 1
    assert len(errors) == WORKERS - 1
    assert all(isinstance(e, EmailAlreadyReferred) for e in errors)
    assert {e.kind for e in errors} == {"EmailAlreadyReferred"}

    with database.session() as session:
        rows = session.query(Referral).filter(Referral.referred_email == "v@example.com").all()
    assert len(rows) == 1
    assert rows[0].id == successes[0].id


def test_concurrent_complete_counts_once(service, database, referrer):
    code = service.issuer.issue_or_get(referrer.id).code
    referral = service.lifecycle.apply_code(code, "v@example.com")

    outcomes = race(lambda: service.lifecycle.complete(referral.id))

    successes, errors = _split(outcomes)
    assert len(successes) == 1
    assert successes[0].status == ReferralStatus.COMPLETED.value
    assert len(errors) == WORKERS - 1
    assert all(isinstance(e, ReferralNotFound) for e in errors)

    reward = service.rewards.get_reward(referrer.id)
    assert reward.completed_referrals == 1
    assert reward.premium_granted is False


def test_concurrent_issue_returns_single_code(service, database, referrer):
    outcomes = race(lambda: service.issuer.issue_or_get(referrer.id))

    successes, errors = _split(outcomes)
    assert errors == []
    assert len({issued.code for issued in successes}) == 1
    assert sum(1 for issued in successes if issued.is_new) == 1

    with database.session() as session:
        active = session.query(ReferralCode).filter(
            ReferralCode.user_id == referrer.id,
            ReferralCode.is_active == True,  # noqa: E712
        ).all()
    assert len(active) == 1
    assert active[0].code == successes[0].code
