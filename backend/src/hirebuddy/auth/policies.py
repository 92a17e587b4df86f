"""Authorization predicates for referral resources.

Each predicate answers whether ``actor`` may touch a resource, keyed on
the actor's identity, the resource owner and the admin role. Services
call them before any read or write on behalf of a user.
"""

from typing import Protocol


class Actor(Protocol):
    id: str
    email: str
    is_admin: bool


def is_admin(actor: Actor | None) -> bool:
    """Check if actor has admin privileges."""
    return bool(actor is not None and actor.is_admin)


def is_self(actor: Actor | None, user_id: str) -> bool:
    return actor is not None and str(actor.id) == str(user_id)


def can_view_code(actor: Actor | None, code) -> bool:
    """Code owners and admins may see a referral code."""
    return is_self(actor, code.user_id) or is_admin(actor)


def can_view_referral(actor: Actor | None, referral) -> bool:
    """Referrer, the referred person, or an admin may see a referral."""
    if actor is None:
        return False
    if is_self(actor, referral.referrer_id) or is_admin(actor):
        return True
    return (actor.email or "").strip().lower() == referral.referred_email


def can_manage_referral(actor: Actor | None, referral) -> bool:
    """Only the referrer or an admin may change a referral's status."""
    return is_self(actor, referral.referrer_id) or is_admin(actor)


def can_view_rewards(actor: Actor | None, user_id: str) -> bool:
    return is_self(actor, user_id) or is_admin(actor)
