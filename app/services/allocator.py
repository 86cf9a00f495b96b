"""
Session Allocator

Books interview and guidance sessions:

    Received -> QuotaChecked -> CandidatesGathered -> Scored
             -> SlotReserved -> Committed      (or Rejected at any gate)

1. Validate the request and that it starts in the future
2. Check the consumer's quota (after the plan-expiry reset)
3. Gather providers passing the hard filters with a covering free window
4. Score and rank them; the top candidate's best-fit window is chosen
5-7. In one transaction: reserve and split the window, create the booking,
     increment the quota bucket
8. Hand the confirmation to the notifier without waiting on it

Steps 1-4 read without locks. Steps 5-7 run under per-provider and
per-consumer locks and re-validate everything they depend on; a window lost
to a racing request fails with NO_AVAILABLE_SLOT rather than falling back to
another candidate.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database import AsyncSessionLocal
from app.models.availability_window import AvailabilityWindow
from app.models.booking import Booking
from app.models.enums import BookingStatus, SessionKind
from app.models.provider import Provider
from app.schemas.bookings import StructuredBookingRequest, UnstructuredBookingRequest
from app.services.availability_store import AvailabilityStore, SlotSplit, find_best_fit
from app.services.booking_notifier import BookingNotifier
from app.services.booking_outcomes import (
    AllocationStage,
    BookingConfirmation,
    BookingOutcome,
    BookingRejected,
    Rejection,
    RejectionReason,
    SlotSplitSummary,
)
from app.services.booking_repository import BookingRepository
from app.services.candidate_scorer import Candidate, ScoreRequest, rank_candidates
from app.services.keyed_locks import KeyedLocks, consumer_key, provider_key
from app.services.provider_admin import ProviderAdmin
from app.services.quota_ledger import QuotaLedger, QuotaState, check_and_reset
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

BookingRequest = Union[StructuredBookingRequest, UnstructuredBookingRequest]


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")


class Allocator:
    """Booking engine entry point for both session kinds"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        locks: Optional[KeyedLocks] = None,
        store: Optional[AvailabilityStore] = None,
        ledger: Optional[QuotaLedger] = None,
        notifier: Optional[BookingNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.clock = clock or utcnow
        self.locks = locks or KeyedLocks()
        self.store = store or AvailabilityStore()
        self.ledger = ledger or QuotaLedger(self.session_factory, self.locks, self.clock)
        self.notifier = notifier or BookingNotifier()
        self.admin = ProviderAdmin(self.session_factory, self.locks, self.store, self.clock)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def book_structured_session(
        self,
        consumer_id: int,
        role: str,
        difficulty: str,
        structured_type: str,
        duration_minutes: int,
        scheduled_start: datetime,
    ) -> BookingOutcome:
        """Book an interview with the best-scoring eligible provider"""
        try:
            request = StructuredBookingRequest(
                consumer_id=consumer_id,
                role=role,
                difficulty=difficulty,
                interview_type=structured_type,
                duration_minutes=duration_minutes,
                scheduled_start=scheduled_start,
            )
        except ValidationError as e:
            return Rejection(RejectionReason.INVALID_INPUT, _validation_message(e))
        return await self.allocate_interview(request)

    async def book_unstructured_session(
        self,
        consumer_id: int,
        provider_id: int,
        topic: str,
        duration_minutes: int,
        scheduled_start: datetime,
    ) -> BookingOutcome:
        """Book a guidance session with a provider the consumer picked"""
        try:
            request = UnstructuredBookingRequest(
                consumer_id=consumer_id,
                provider_id=provider_id,
                topic=topic,
                duration_minutes=duration_minutes,
                scheduled_start=scheduled_start,
            )
        except ValidationError as e:
            return Rejection(RejectionReason.INVALID_INPUT, _validation_message(e))
        return await self.allocate_guidance(request)

    async def allocate_interview(self, request: StructuredBookingRequest) -> BookingOutcome:
        stage = AllocationStage.RECEIVED
        kind = SessionKind.INTERVIEW
        try:
            now = self.clock()
            self._ensure_future(request, now)

            await self._check_quota(request.consumer_id, kind, now)
            stage = self._advance(request, stage, AllocationStage.QUOTA_CHECKED)

            candidates = await self._gather_candidates(request, now)
            stage = self._advance(request, stage, AllocationStage.CANDIDATES_GATHERED)

            ranked = rank_candidates(
                candidates,
                ScoreRequest(start=request.scheduled_start, end=request.scheduled_end, target_tag=request.role),
            )
            if not ranked:
                raise BookingRejected(
                    RejectionReason.NO_ELIGIBLE_PROVIDER,
                    "No interviewers available for the selected criteria and time slot",
                )
            stage = self._advance(request, stage, AllocationStage.SCORED)

            winner = ranked[0]
            booking, split = await self._commit(
                request,
                kind,
                provider_id=winner.candidate.provider_id,
                window_id=winner.best_window.id,
                fields={
                    "role": request.role,
                    "difficulty": request.difficulty.value,
                    "interview_type": request.interview_type.value,
                },
            )
            stage = self._advance(request, AllocationStage.SLOT_RESERVED, AllocationStage.COMMITTED)
        except BookingRejected as rejected:
            return self._reject(request, rejected, stage)

        return self._confirm(booking, split, score=winner.score)

    async def allocate_guidance(self, request: UnstructuredBookingRequest) -> BookingOutcome:
        stage = AllocationStage.RECEIVED
        kind = SessionKind.GUIDANCE
        try:
            now = self.clock()
            self._ensure_future(request, now)

            await self._check_quota(request.consumer_id, kind, now)
            stage = self._advance(request, stage, AllocationStage.QUOTA_CHECKED)

            window_id = await self._pick_provider_window(request)
            stage = self._advance(request, stage, AllocationStage.CANDIDATES_GATHERED)

            booking, split = await self._commit(
                request,
                kind,
                provider_id=request.provider_id,
                window_id=window_id,
                fields={"topic": request.topic},
            )
            stage = self._advance(request, AllocationStage.SLOT_RESERVED, AllocationStage.COMMITTED)
        except BookingRejected as rejected:
            return self._reject(request, rejected, stage)

        return self._confirm(booking, split)

    async def publish_window(self, provider_id: int, start: datetime, end: datetime) -> AvailabilityWindow:
        """Add a free window, serialised with reservations on the same provider"""
        async with self.locks.hold(provider_key(provider_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    return await self.store.add_window(session, provider_id, start, end, self.clock())

    async def withdraw_window(self, provider_id: int, window_id: int) -> bool:
        async with self.locks.hold(provider_key(provider_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    return await self.store.delete_window(session, provider_id, window_id)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _ensure_future(self, request: BookingRequest, now: datetime) -> None:
        if request.scheduled_start <= now:
            raise BookingRejected(RejectionReason.INVALID_INPUT, "Scheduled time must be in the future")

    async def _check_quota(self, consumer_id: int, kind: SessionKind, now: datetime) -> QuotaState:
        """Unlocked pre-check; repeated under lock inside the transaction"""
        async with self.session_factory() as session:
            profile = await self.ledger.load_profile(session, consumer_id)
            state = check_and_reset(QuotaState.from_profile(profile), now)
        self.ledger.ensure_capacity(state, kind)
        return state

    async def _gather_candidates(self, request: StructuredBookingRequest, now: datetime) -> List[Candidate]:
        async with self.session_factory() as session:
            grouped = await self.store.find_covering_windows(
                session,
                request.scheduled_start,
                request.scheduled_end,
                SessionKind.INTERVIEW,
                required_tags={
                    "difficulty_levels": request.difficulty.value,
                    "interview_types": request.interview_type.value,
                },
            )
            counts = await BookingRepository(session).upcoming_counts(grouped.keys(), now)

        candidates = [
            Candidate(
                provider_id=provider.id,
                qualification_tags=list(provider.roles_supported or []),
                years_of_experience=provider.years_of_experience,
                upcoming_sessions=counts.get(provider.id, 0),
                windows=windows,
            )
            for provider, windows in grouped.values()
        ]
        logger.debug(f"Gathered {len(candidates)} candidates for consumer {request.consumer_id}")
        if not candidates:
            raise BookingRejected(
                RejectionReason.NO_ELIGIBLE_PROVIDER,
                "No interviewers available for the selected criteria and time slot",
            )
        return candidates

    async def _pick_provider_window(self, request: UnstructuredBookingRequest) -> int:
        async with self.session_factory() as session:
            provider = await session.get(Provider, request.provider_id)
            if provider is None or not provider.is_approved:
                raise BookingRejected(RejectionReason.NO_ELIGIBLE_PROVIDER, "Mentor not available")
            if not provider.offers(SessionKind.GUIDANCE):
                raise BookingRejected(
                    RejectionReason.NO_ELIGIBLE_PROVIDER,
                    "This mentor does not offer guidance sessions",
                )
            windows = await self.store.list_windows(session, provider.id, include_booked=False)

        best = find_best_fit(windows, request.scheduled_start, request.scheduled_end)
        if best is None:
            raise BookingRejected(
                RejectionReason.NO_AVAILABLE_SLOT,
                "No available slot covers your chosen time and duration. "
                "Please pick a different start time or select a shorter session.",
            )
        return best.id

    # ------------------------------------------------------------------
    # Critical section
    # ------------------------------------------------------------------

    async def _commit(
        self,
        request: BookingRequest,
        kind: SessionKind,
        provider_id: int,
        window_id: int,
        fields: Dict[str, Any],
    ) -> Tuple[Booking, SlotSplit]:
        """
        Reserve the window, create the booking and increment usage atomically.

        Raises:
            BookingRejected: LIMIT_REACHED or NO_AVAILABLE_SLOT; nothing is written
            SQLAlchemyError: datastore failure; nothing is written
        """
        consumer_id = request.consumer_id
        async with self.locks.hold(provider_key(provider_id), consumer_key(consumer_id)):
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        profile = await self.ledger.load_profile(session, consumer_id, for_update=True)
                        state = self.ledger.refresh(profile, self.clock())
                        self.ledger.ensure_capacity(state, kind)

                        split = await self.store.reserve(
                            session, window_id, request.scheduled_start, request.scheduled_end
                        )

                        booking = Booking(
                            consumer_id=consumer_id,
                            provider_id=provider_id,
                            window_id=window_id,
                            session_kind=kind.value,
                            scheduled_start=request.scheduled_start,
                            duration_minutes=request.duration_minutes,
                            status=BookingStatus.SCHEDULED.value,
                            **fields,
                        )
                        session.add(booking)
                        await session.flush()

                        await self.ledger.increment(session, consumer_id, state, kind)
                except SQLAlchemyError:
                    logger.error(
                        f"Booking transaction failed for consumer {consumer_id} "
                        f"on window {window_id}; rolled back",
                        exc_info=True,
                    )
                    raise
        return booking, split

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _advance(self, request: BookingRequest, current: AllocationStage, nxt: AllocationStage) -> AllocationStage:
        logger.debug(f"consumer {request.consumer_id}: {current.value} -> {nxt.value}")
        return nxt

    def _reject(self, request: BookingRequest, rejected: BookingRejected, stage: AllocationStage) -> Rejection:
        rejection = rejected.at(stage)
        logger.info(
            f"Booking rejected for consumer {request.consumer_id}: "
            f"{rejection.reason.value} after {stage.value} ({rejection.message})"
        )
        return rejection

    def _confirm(self, booking: Booking, split: SlotSplit, score: Optional[int] = None) -> BookingConfirmation:
        confirmation = BookingConfirmation(
            booking_id=booking.id,
            consumer_id=booking.consumer_id,
            provider_id=booking.provider_id,
            window_id=booking.window_id,
            session_kind=booking.session_kind,
            scheduled_start=booking.scheduled_start,
            scheduled_end=split.reserved_end,
            duration_minutes=booking.duration_minutes,
            status=booking.status,
            slot_split=SlotSplitSummary(
                before_minutes_reclaimed=split.before_minutes_reclaimed,
                after_minutes_reclaimed=split.after_minutes_reclaimed,
                discarded_minutes=split.discarded_minutes,
            ),
            topic=booking.topic,
            role=booking.role,
            difficulty=booking.difficulty,
            interview_type=booking.interview_type,
            score=score,
        )
        logger.info(
            f"Booked {booking.session_kind} session {booking.id}: consumer {booking.consumer_id} "
            f"with provider {booking.provider_id} at {booking.scheduled_start} "
            f"(reclaimed {split.before_minutes_reclaimed}+{split.after_minutes_reclaimed} min)"
        )
        self.notifier.notify(
            {
                "booking_id": confirmation.booking_id,
                "session_kind": confirmation.session_kind,
                "consumer_id": confirmation.consumer_id,
                "provider_id": confirmation.provider_id,
                "scheduled_start": confirmation.scheduled_start.isoformat(),
                "scheduled_end": confirmation.scheduled_end.isoformat(),
                "duration_minutes": confirmation.duration_minutes,
                "topic": confirmation.topic,
                "role": confirmation.role,
            }
        )
        return confirmation


# Global allocator instance
_allocator: Optional[Allocator] = None


def get_allocator() -> Allocator:
    """Get or create global Allocator instance."""
    global _allocator
    if _allocator is None:
        _allocator = Allocator()
    return _allocator
