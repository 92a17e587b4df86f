"""Referral system health check."""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from hirebuddy.api.deps import get_referral_service
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.models import Referral, ReferralCode, ReferralReward
from hirebuddy.referral.service import ReferralService

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["health"])

REFERRAL_TABLES = [
    ReferralCode.__tablename__,
    Referral.__tablename__,
    ReferralReward.__tablename__,
]


class TableHealth(BaseModel):
    status: str
    error: str | None = None


class ReferralHealthResponse(BaseModel):
    overall: str
    tables: dict[str, TableHealth]


@router.get("/health", response_model=ReferralHealthResponse)
async def referral_health_check(
    response: Response,
    service: ReferralService = Depends(get_referral_service),
):
    """Check that every referral table is reachable."""
    results = service.database.check_tables(REFERRAL_TABLES)

    tables = {
        name: TableHealth(status="healthy" if error is None else "error", error=error)
        for name, error in results.items()
    }
    overall = "healthy" if all(error is None for error in results.values()) else "unhealthy"

    if overall != "healthy":
        logger.warning("referral_health_degraded", tables={k: v for k, v in results.items() if v})
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReferralHealthResponse(overall=overall, tables=tables)
