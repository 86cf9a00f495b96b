"""
Quota and Subscription API Endpoints

GET  /api/v1/quota                  - Caller's plan and usage for this period
POST /api/v1/subscriptions/upgrade  - Payment callback: apply one paid month
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.auth import Caller, require_role
from app.api.errors import rejection_to_http
from app.services.allocator import Allocator, get_allocator
from app.services.booking_outcomes import BookingRejected
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["quota"])


class QuotaData(BaseModel):
    planType: str
    interviewsUsed: int = Field(..., ge=0)
    interviewsLimit: int = Field(..., ge=0)
    guidanceUsed: int = Field(..., ge=0)
    guidanceLimit: int = Field(..., ge=0)
    planExpiresAt: Optional[str] = None


class QuotaResponse(BaseModel):
    data: QuotaData
    metadata: Dict[str, Any]


class UpgradeBody(BaseModel):
    consumer_id: int = Field(..., gt=0)
    reference: str = Field(..., min_length=1, max_length=100, description="Payment order id")


@router.get("/quota", response_model=QuotaResponse)
async def get_quota(
    caller: Caller = Depends(require_role("consumer", allow_admin=False)),
    allocator: Allocator = Depends(get_allocator),
):
    """Usage after any due plan-expiry reset has been applied"""
    try:
        state = await allocator.ledger.get_usage(caller.user_id)
    except BookingRejected as e:
        raise rejection_to_http(e.rejection)

    return {
        "data": state.to_dict(),
        "metadata": {"timestamp": utcnow().isoformat()},
    }


@router.post("/subscriptions/upgrade")
async def upgrade_subscription(
    body: UpgradeBody,
    caller: Caller = Depends(require_role("admin")),
    allocator: Allocator = Depends(get_allocator),
) -> Dict[str, Any]:
    """
    Apply a verified payment. Replaying the same reference is a no-op that
    returns the original subscription.
    """
    try:
        result = await allocator.ledger.upgrade(body.consumer_id, body.reference)
    except BookingRejected as e:
        raise rejection_to_http(e.rejection)

    return {
        "data": {
            "subscriptionId": result.subscription_id,
            "validFrom": result.valid_from.isoformat(),
            "validUntil": result.valid_until.isoformat(),
            "alreadyProcessed": result.already_processed,
            "quota": result.state.to_dict(),
        },
        "metadata": {"timestamp": utcnow().isoformat()},
    }
