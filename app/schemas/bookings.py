"""Request and response models for booking operations"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import MIN_SESSION_MINUTES, MAX_SESSION_MINUTES
from app.models.enums import DifficultyLevel, InterviewType


def to_naive_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class _TimedRequest(BaseModel):
    duration_minutes: int = Field(..., ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES)
    scheduled_start: datetime

    @field_validator("scheduled_start")
    @classmethod
    def normalise_start(cls, v: datetime) -> datetime:
        if v.microsecond:
            raise ValueError("scheduled_start must be a whole second")
        return to_naive_utc(v)

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)


class InterviewBookingBody(_TimedRequest):
    """Body of POST /bookings/interview"""
    role: str = Field(..., min_length=1, max_length=100)
    difficulty: DifficultyLevel
    interview_type: InterviewType

    @field_validator("role")
    @classmethod
    def strip_role(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("role must not be blank")
        return v


class GuidanceBookingBody(_TimedRequest):
    """Body of POST /bookings/guidance"""
    provider_id: int = Field(..., gt=0)
    topic: str = Field(..., min_length=1, max_length=2000)

    @field_validator("topic")
    @classmethod
    def strip_topic(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic must not be blank")
        return v


class StructuredBookingRequest(InterviewBookingBody):
    consumer_id: int = Field(..., gt=0)


class UnstructuredBookingRequest(GuidanceBookingBody):
    consumer_id: int = Field(..., gt=0)


class SlotSplitResponse(BaseModel):
    before_minutes_reclaimed: int
    after_minutes_reclaimed: int
    discarded_minutes: int


class BookingResponse(BaseModel):
    """A booking as returned to API callers"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    consumer_id: int
    provider_id: Optional[int]
    session_kind: str
    scheduled_start: datetime
    duration_minutes: int
    status: str
    topic: Optional[str] = None
    role: Optional[str] = None
    difficulty: Optional[str] = None
    interview_type: Optional[str] = None


class BookingCreatedResponse(BaseModel):
    data: BookingResponse
    slot_split: SlotSplitResponse
    metadata: Dict[str, Any]


class BookingListResponse(BaseModel):
    data: List[BookingResponse]
    metadata: Dict[str, Any]
