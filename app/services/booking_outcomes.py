"""
Booking Outcomes

Typed results returned by the allocator. Domain rejections are expected
outcomes, so the public booking operations return them instead of raising.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union


class RejectionReason(str, enum.Enum):
    INVALID_INPUT = "INVALID_INPUT"
    LIMIT_REACHED = "LIMIT_REACHED"
    NO_ELIGIBLE_PROVIDER = "NO_ELIGIBLE_PROVIDER"
    NO_AVAILABLE_SLOT = "NO_AVAILABLE_SLOT"


class AllocationStage(str, enum.Enum):
    """Allocator progress; a rejection records the stage it happened at"""

    RECEIVED = "received"
    QUOTA_CHECKED = "quota_checked"
    CANDIDATES_GATHERED = "candidates_gathered"
    SCORED = "scored"
    SLOT_RESERVED = "slot_reserved"
    COMMITTED = "committed"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str
    stage: AllocationStage = AllocationStage.RECEIVED
    details: Dict[str, Any] = field(default_factory=dict)

    ok = False


class BookingRejected(Exception):
    """
    Internal carrier for a Rejection.

    Raised inside the reservation transaction so that leaving the
    `session.begin()` block rolls every effect back.
    """

    def __init__(
        self,
        reason: RejectionReason,
        message: str,
        stage: AllocationStage = AllocationStage.RECEIVED,
        **details: Any,
    ):
        super().__init__(message)
        self.rejection = Rejection(reason=reason, message=message, stage=stage, details=details)

    def at(self, stage: AllocationStage) -> Rejection:
        """Return the carried rejection, stamped with the stage it surfaced at"""
        return Rejection(
            reason=self.rejection.reason,
            message=self.rejection.message,
            stage=stage,
            details=self.rejection.details,
        )


@dataclass(frozen=True)
class SlotSplitSummary:
    """Minutes kept as new windows vs. dropped as slivers around a reservation"""

    before_minutes_reclaimed: int
    after_minutes_reclaimed: int
    discarded_minutes: int


@dataclass(frozen=True)
class BookingConfirmation:
    booking_id: int
    consumer_id: int
    provider_id: int
    window_id: int
    session_kind: str
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    status: str
    slot_split: SlotSplitSummary
    topic: Optional[str] = None
    role: Optional[str] = None
    difficulty: Optional[str] = None
    interview_type: Optional[str] = None
    score: Optional[int] = None

    ok = True


BookingOutcome = Union[BookingConfirmation, Rejection]
