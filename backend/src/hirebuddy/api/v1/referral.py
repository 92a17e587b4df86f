"""Referral API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from hirebuddy.api.deps import get_referral_service
from hirebuddy.api.rate_limit import limiter
from hirebuddy.auth.middleware import require_admin, require_auth
from hirebuddy.auth.models import UserAccount
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.service import ReferralService

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class IssueCodeResponse(BaseModel):
    """User's referral code."""
    code: str
    is_new: bool
    link: str
    created_at: datetime


class ReferralCodeResponse(BaseModel):
    code: str
    link: str
    created_at: datetime


class ApplyCodeRequest(BaseModel):
    """Request to apply a referral code for a referred email."""
    model_config = ConfigDict(populate_by_name=True)

    referral_code: str = Field(alias="referralCode", max_length=32)
    user_email: str = Field(alias="userEmail", max_length=255)


class CompleteReferralRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    referral_id: str = Field(alias="referralId", min_length=1, max_length=36)


class ReferralResponse(BaseModel):
    """A single referral."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    referrer_id: str
    referred_email: str
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    expires_at: datetime


class ReferralStatsUser(BaseModel):
    id: str
    referral_code: str | None = None
    code_created_at: datetime | None = None


class ReferralStatsRewards(BaseModel):
    completed_referrals: int
    premium_granted: bool
    premium_granted_at: datetime | None = None
    premium_expires_at: datetime | None = None


class ReferralStatsCounts(BaseModel):
    total_referrals: int
    completed_referrals: int
    pending_referrals: int
    expired_referrals: int
    referrals_needed_for_premium: int
    progress_percentage: float


class ReferralStatsResponse(BaseModel):
    """Referral statistics for the current user."""
    user: ReferralStatsUser
    rewards: ReferralStatsRewards
    statistics: ReferralStatsCounts
    referrals: list[ReferralResponse]


class ReferralProgressResponse(BaseModel):
    user_id: str
    completed_referrals: int
    progress_status: str
    referrals_needed_for_premium: int


class PremiumAccessResponse(BaseModel):
    has_premium_access: bool


class ValidateCodeRequest(BaseModel):
    """Request to validate a referral code."""
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(alias="referralCode", max_length=32)


class ValidateCodeResponse(BaseModel):
    valid: bool
    format_valid: bool


class AdminSummaryRow(BaseModel):
    user_id: str
    email: str
    completed_referrals: int
    premium_granted: bool
    premium_granted_at: datetime | None = None
    premium_expires_at: datetime | None = None
    total_referrals: int
    completed_count: int
    pending_count: int
    expired_count: int


class SystemStatisticsResponse(BaseModel):
    total_referrals: int
    completed_referrals: int
    pending_referrals: int
    expired_referrals: int
    unique_referrers: int
    unique_referred_emails: int


class ExpireResponse(BaseModel):
    expired: int


# ==================== ENDPOINTS ====================


@router.post("/code", response_model=IssueCodeResponse)
async def issue_referral_code(
    response: Response,
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    """Get current user's referral code, creating it on first call."""
    issued = service.issuer.issue_or_get(user.id)
    response.status_code = status.HTTP_201_CREATED if issued.is_new else status.HTTP_200_OK

    return IssueCodeResponse(
        code=issued.code,
        is_new=issued.is_new,
        link=service.share_link(issued.code),
        created_at=issued.created_at,
    )


@router.get("/code", response_model=ReferralCodeResponse)
async def get_referral_code(
    user_id: str | None = Query(None, description="Code owner (admins only; defaults to caller)"),
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    """Get an active referral code without creating one."""
    record = service.issuer.get_code_record(user_id or user.id, actor=user)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active referral code",
        )

    return ReferralCodeResponse(
        code=record.code,
        link=service.share_link(record.code),
        created_at=record.created_at,
    )


@router.post("/apply", response_model=ReferralResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def apply_referral_code(
    request: Request,
    body: ApplyCodeRequest,
    service: ReferralService = Depends(get_referral_service),
):
    """Apply a referral code for a new user's email.

    Public: called during signup before the referred user has a session.
    """
    referral = service.lifecycle.apply_code(body.referral_code, body.user_email)
    return ReferralResponse.model_validate(referral)


@router.post("/complete", response_model=ReferralResponse)
async def complete_referral(
    body: CompleteReferralRequest,
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    """Mark a referral completed once the referred user finished onboarding."""
    referral = service.lifecycle.complete(body.referral_id, actor=user)
    return ReferralResponse.model_validate(referral)


@router.get("/referrals/{referral_id}", response_model=ReferralResponse)
async def get_referral(
    referral_id: str,
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    referral = service.lifecycle.get_referral(referral_id, actor=user)
    return ReferralResponse.model_validate(referral)


@router.get("/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    """Get referral statistics for current user.

    Includes:
    - Active referral code
    - Reward counter and premium grant
    - Counts by status and progress toward premium
    - Referral list, newest first
    """
    stats = service.lifecycle.get_stats_for_user(user.id, actor=user)
    stats["referrals"] = [ReferralResponse.model_validate(r) for r in stats["referrals"]]
    return ReferralStatsResponse(**stats)


@router.get("/progress", response_model=ReferralProgressResponse)
async def get_referral_progress(
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    return ReferralProgressResponse(**service.reporting.get_user_progress(user.id, actor=user))


@router.get("/premium", response_model=PremiumAccessResponse)
async def get_premium_access(
    user: UserAccount = Depends(require_auth),
    service: ReferralService = Depends(get_referral_service),
):
    """Whether the current user holds unexpired referral premium."""
    return PremiumAccessResponse(has_premium_access=service.rewards.has_premium_access(user.id))


@router.post("/validate", response_model=ValidateCodeResponse)
@limiter.limit("30/minute")
async def validate_referral_code(
    request: Request,
    body: ValidateCodeRequest,
    service: ReferralService = Depends(get_referral_service),
):
    """Validate a referral code.

    Used during registration to check a code before applying it.
    """
    format_valid = service.issuer.validate_format(body.code)
    valid = format_valid and service.issuer.validate_active(body.code)
    return ValidateCodeResponse(valid=valid, format_valid=format_valid)


# ==================== ADMIN ====================


@router.get("/admin/summary", response_model=list[AdminSummaryRow])
async def get_admin_summary(
    admin: UserAccount = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    return [AdminSummaryRow(**row) for row in service.reporting.get_admin_summary(actor=admin)]


@router.get("/admin/statistics", response_model=SystemStatisticsResponse)
async def get_system_statistics(
    admin: UserAccount = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    return SystemStatisticsResponse(**service.reporting.get_system_statistics(actor=admin))


@router.post("/admin/expire", response_model=ExpireResponse)
async def expire_stale_referrals(
    admin: UserAccount = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
):
    """Rewrite pending referrals past their expiry to ``expired``."""
    expired = service.lifecycle.expire_stale()
    logger.info("admin_expire_triggered", admin_id=admin.id, expired=expired)
    return ExpireResponse(expired=expired)
