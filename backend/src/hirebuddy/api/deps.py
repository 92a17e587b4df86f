"""Shared FastAPI dependencies."""

from fastapi import Request

from hirebuddy.referral.service import ReferralService, referral_service


def get_referral_service(request: Request) -> ReferralService:
    """Referral service bound to the running app."""
    return getattr(request.app.state, "referral_service", None) or referral_service
