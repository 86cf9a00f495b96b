"""
Booking API Endpoints

POST /api/v1/bookings/interview - Book a structured interview (provider chosen by the engine)
POST /api/v1/bookings/guidance  - Book a guidance session with a chosen mentor
GET  /api/v1/bookings           - Caller's bookings, newest first
GET  /api/v1/bookings/{id}      - One booking
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Caller, require_role
from app.api.errors import error_body, not_found, rejection_to_http
from app.database import get_db
from app.schemas.bookings import (
    BookingCreatedResponse,
    BookingListResponse,
    BookingResponse,
    GuidanceBookingBody,
    InterviewBookingBody,
)
from app.services.allocator import Allocator, get_allocator
from app.services.booking_outcomes import BookingConfirmation, BookingOutcome
from app.services.booking_repository import BookingRepository
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


def _created(outcome: BookingOutcome) -> Dict[str, Any]:
    if not outcome.ok:
        raise rejection_to_http(outcome)

    confirmation: BookingConfirmation = outcome
    return {
        "data": {
            "id": confirmation.booking_id,
            "consumer_id": confirmation.consumer_id,
            "provider_id": confirmation.provider_id,
            "session_kind": confirmation.session_kind,
            "scheduled_start": confirmation.scheduled_start,
            "duration_minutes": confirmation.duration_minutes,
            "status": confirmation.status,
            "topic": confirmation.topic,
            "role": confirmation.role,
            "difficulty": confirmation.difficulty,
            "interview_type": confirmation.interview_type,
        },
        "slot_split": {
            "before_minutes_reclaimed": confirmation.slot_split.before_minutes_reclaimed,
            "after_minutes_reclaimed": confirmation.slot_split.after_minutes_reclaimed,
            "discarded_minutes": confirmation.slot_split.discarded_minutes,
        },
        "metadata": {
            "timestamp": utcnow().isoformat(),
            "scheduled_end": confirmation.scheduled_end.isoformat(),
            "score": confirmation.score,
        },
    }


@router.post("/interview", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def book_interview(
    body: InterviewBookingBody,
    caller: Caller = Depends(require_role("consumer", allow_admin=False)),
    allocator: Allocator = Depends(get_allocator),
):
    """
    Book a structured interview.

    The engine filters interviewers by difficulty and interview type, scores
    the rest and books the best one.

    Raises:
        400: Invalid input or missing profile
        403: Interview quota used up (details carry used/limit/planType)
        404: No interviewer matches
        409: The slot was taken by a concurrent booking
    """
    outcome = await allocator.book_structured_session(
        consumer_id=caller.user_id,
        role=body.role,
        difficulty=body.difficulty.value,
        structured_type=body.interview_type.value,
        duration_minutes=body.duration_minutes,
        scheduled_start=body.scheduled_start,
    )
    return _created(outcome)


@router.post("/guidance", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def book_guidance(
    body: GuidanceBookingBody,
    caller: Caller = Depends(require_role("consumer", allow_admin=False)),
    allocator: Allocator = Depends(get_allocator),
):
    """Book a guidance session with the mentor the consumer picked"""
    outcome = await allocator.book_unstructured_session(
        consumer_id=caller.user_id,
        provider_id=body.provider_id,
        topic=body.topic,
        duration_minutes=body.duration_minutes,
        scheduled_start=body.scheduled_start,
    )
    return _created(outcome)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    consumer_id: Optional[int] = Query(None, gt=0, description="Admin only"),
    provider_id: Optional[int] = Query(None, gt=0, description="Admin only"),
    caller: Caller = Depends(require_role("consumer", "provider")),
    db: AsyncSession = Depends(get_db),
):
    """
    Consumers see the sessions they booked, providers the sessions booked
    with them. Admins pick either side with a query parameter.
    """
    repository = BookingRepository(db)

    if caller.role == "consumer":
        bookings = await repository.list_for_consumer(caller.user_id)
    elif caller.role == "provider":
        bookings = await repository.list_for_provider(caller.user_id)
    elif consumer_id is not None:
        bookings = await repository.list_for_consumer(consumer_id)
    elif provider_id is not None:
        bookings = await repository.list_for_provider(provider_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_body("INVALID_INPUT", "consumer_id or provider_id is required"),
        )

    return {
        "data": [BookingResponse.model_validate(b) for b in bookings],
        "metadata": {"timestamp": utcnow().isoformat(), "count": len(bookings)},
    }


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int = Path(..., gt=0),
    caller: Caller = Depends(require_role("consumer", "provider")),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Bookings belonging to someone else are reported as not found"""
    booking = await BookingRepository(db).get(booking_id)

    visible = booking is not None and (
        caller.role == "admin"
        or (caller.role == "consumer" and booking.consumer_id == caller.user_id)
        or (caller.role == "provider" and booking.provider_id == caller.user_id)
    )
    if not visible:
        raise not_found("Booking", booking_id)

    return {
        "data": BookingResponse.model_validate(booking).model_dump(mode="json"),
        "metadata": {"timestamp": utcnow().isoformat()},
    }
