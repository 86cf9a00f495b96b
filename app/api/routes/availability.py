"""
Availability API Endpoints

GET    /api/v1/availability       - Provider's windows (free and booked)
POST   /api/v1/availability       - Publish a new free window
DELETE /api/v1/availability/{id}  - Remove a window that is still free
"""
import logging
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Caller, require_role
from app.api.errors import not_found, rejection_to_http
from app.database import get_db
from app.schemas.bookings import to_naive_utc
from app.services.allocator import Allocator, get_allocator
from app.services.availability_store import AvailabilityStore
from app.services.booking_outcomes import BookingRejected
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/availability", tags=["availability"])


class WindowBody(BaseModel):
    """Body of POST /availability"""
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class WindowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool
    duration_minutes: int


class WindowListResponse(BaseModel):
    data: List[WindowResponse]
    metadata: Dict[str, Any]


class WindowCreatedResponse(BaseModel):
    data: WindowResponse
    metadata: Dict[str, Any]


@router.get("", response_model=WindowListResponse)
async def list_windows(
    include_booked: bool = Query(True),
    caller: Caller = Depends(require_role("provider", allow_admin=False)),
    db: AsyncSession = Depends(get_db),
):
    windows = await AvailabilityStore().list_windows(db, caller.user_id, include_booked=include_booked)
    return {
        "data": [WindowResponse.model_validate(w) for w in windows],
        "metadata": {"timestamp": utcnow().isoformat(), "count": len(windows)},
    }


@router.post("", response_model=WindowCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_window(
    body: WindowBody,
    caller: Caller = Depends(require_role("provider", allow_admin=False)),
    allocator: Allocator = Depends(get_allocator),
):
    """
    Publish a free window.

    Raises:
        400: Bad bounds, start in the past, profile not approved, or overlap
             with an existing window
    """
    try:
        window = await allocator.publish_window(caller.user_id, body.start_time, body.end_time)
    except BookingRejected as e:
        raise rejection_to_http(e.rejection)

    return {
        "data": WindowResponse.model_validate(window),
        "metadata": {"timestamp": utcnow().isoformat()},
    }


@router.delete("/{window_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_window(
    window_id: int = Path(..., gt=0),
    caller: Caller = Depends(require_role("provider", allow_admin=False)),
    allocator: Allocator = Depends(get_allocator),
):
    """Booked windows cannot be removed and are reported as not found"""
    removed = await allocator.withdraw_window(caller.user_id, window_id)
    if not removed:
        raise not_found("Unbooked availability window", window_id)
