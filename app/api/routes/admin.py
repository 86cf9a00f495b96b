"""
Admin API Endpoints

GET   /api/v1/admin/providers                                - Providers with upcoming-session counts
PATCH /api/v1/admin/providers/{id}                           - Approve, reject or re-queue a provider
GET   /api/v1/admin/bookings/{id}/eligible-providers         - Providers able to take a booking
POST  /api/v1/admin/bookings/{id}/reassign                   - Move a booking to another provider
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Caller, require_role
from app.api.errors import not_found, rejection_to_http
from app.database import get_db
from app.models.booking import Booking
from app.models.enums import ProviderStatus
from app.schemas.bookings import BookingResponse
from app.services.allocator import Allocator, get_allocator
from app.services.booking_outcomes import BookingRejected
from app.services.booking_repository import BookingRepository
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


class ProviderSummary(BaseModel):
    id: int
    display_name: str
    email: Optional[str]
    status: str
    roles_supported: List[str]
    difficulty_levels: List[str]
    interview_types: List[str]
    session_kinds_offered: List[str]
    years_of_experience: Optional[int]
    upcoming_session_count: int


class ProviderListResponse(BaseModel):
    data: List[ProviderSummary]
    metadata: Dict[str, Any]


class ProviderStatusBody(BaseModel):
    status: ProviderStatus


class ReassignBody(BaseModel):
    provider_id: int = Field(..., gt=0)


def _summary(provider, upcoming: int) -> ProviderSummary:
    return ProviderSummary(
        id=provider.id,
        display_name=provider.display_name,
        email=provider.email,
        status=provider.status,
        roles_supported=list(provider.roles_supported or []),
        difficulty_levels=list(provider.difficulty_levels or []),
        interview_types=list(provider.interview_types or []),
        session_kinds_offered=list(provider.session_kinds_offered or []),
        years_of_experience=provider.years_of_experience,
        upcoming_session_count=upcoming,
    )


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    status: Optional[ProviderStatus] = Query(None, description="Filter by review status"),
    caller: Caller = Depends(require_role("admin")),
    allocator: Allocator = Depends(get_allocator),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    listing = await allocator.admin.list_providers(db, now, status)
    return {
        "data": [_summary(p, upcoming) for p, upcoming in listing],
        "metadata": {"timestamp": now.isoformat(), "count": len(listing)},
    }


@router.patch("/providers/{provider_id}")
async def update_provider_status(
    body: ProviderStatusBody,
    provider_id: int = Path(..., gt=0),
    caller: Caller = Depends(require_role("admin")),
    allocator: Allocator = Depends(get_allocator),
) -> Dict[str, Any]:
    """Only approved providers are considered by the allocator"""
    provider = await allocator.admin.set_provider_status(provider_id, body.status)
    if provider is None:
        raise not_found("Provider", provider_id)

    return {
        "data": {"id": provider.id, "display_name": provider.display_name, "status": provider.status},
        "metadata": {"timestamp": utcnow().isoformat()},
    }


@router.get("/bookings/{booking_id}/eligible-providers", response_model=ProviderListResponse)
async def eligible_providers(
    booking_id: int = Path(..., gt=0),
    caller: Caller = Depends(require_role("admin")),
    allocator: Allocator = Depends(get_allocator),
    db: AsyncSession = Depends(get_db),
):
    """Least busy first"""
    booking: Optional[Booking] = await BookingRepository(db).get(booking_id)
    if booking is None:
        raise not_found("Booking", booking_id)

    now = utcnow()
    listing = await allocator.admin.eligible_providers(db, booking, now)
    return {
        "data": [_summary(p, upcoming) for p, upcoming in listing],
        "metadata": {"timestamp": now.isoformat(), "count": len(listing), "booking_id": booking_id},
    }


@router.post("/bookings/{booking_id}/reassign")
async def reassign_booking(
    body: ReassignBody,
    booking_id: int = Path(..., gt=0),
    caller: Caller = Depends(require_role("admin")),
    allocator: Allocator = Depends(get_allocator),
) -> Dict[str, Any]:
    """
    Raises:
        400: Booking not scheduled, provider ineligible or already busy then
        404: Unknown booking
    """
    try:
        booking = await allocator.admin.reassign_booking(booking_id, body.provider_id)
    except BookingRejected as e:
        raise rejection_to_http(e.rejection)
    if booking is None:
        raise not_found("Booking", booking_id)

    return {
        "data": BookingResponse.model_validate(booking).model_dump(mode="json"),
        "metadata": {"timestamp": utcnow().isoformat(), "message": "Provider assigned successfully"},
    }
