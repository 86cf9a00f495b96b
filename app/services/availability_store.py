"""
Availability Store

Holds provider-published time windows and performs the reservation split:
the consumed window is kept as a booked record and the unused time before and
after the reserved interval becomes new free windows when it is long enough
to be bookable.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from sqlalchemy import select, update, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import MAX_SESSION_MINUTES, MIN_REMAINDER_MINUTES
from app.models.availability_window import AvailabilityWindow
from app.models.booking import Booking
from app.models.enums import BookingStatus, ProviderStatus, SessionKind
from app.models.provider import Provider
from app.services.booking_outcomes import BookingRejected, RejectionReason

logger = logging.getLogger(__name__)


class WindowLike(Protocol):
    id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def window_covers(window: WindowLike, start: datetime, end: datetime) -> bool:
    """Full containment, inclusive at both ends"""
    return window.start_time <= start and window.end_time >= end


def excess_minutes(window: WindowLike, start: datetime, end: datetime) -> int:
    """Window duration minus requested duration"""
    return minutes_between(window.start_time, window.end_time) - minutes_between(start, end)


def find_best_fit(
    windows: Iterable[WindowLike],
    start: datetime,
    end: datetime,
) -> Optional[WindowLike]:
    """
    Pick the free window that fully contains [start, end] with the least excess.

    Ties go to the earliest-starting window, then the lowest id, so the result
    does not depend on the order the windows were loaded in.
    """
    qualifying = [w for w in windows if not w.is_booked and window_covers(w, start, end)]
    if not qualifying:
        return None
    return min(
        qualifying,
        key=lambda w: (excess_minutes(w, start, end), w.start_time, w.id or 0),
    )


@dataclass(frozen=True)
class SlotSplit:
    """
    Result of carving [reserved_start, reserved_end) out of a window.

    `before` and `after` are the fragments that survive as new free windows;
    leftovers under the threshold are counted in `discarded_minutes`.
    """

    window_start: datetime
    window_end: datetime
    reserved_start: datetime
    reserved_end: datetime
    before: Optional[Tuple[datetime, datetime]]
    after: Optional[Tuple[datetime, datetime]]
    before_minutes: int
    after_minutes: int

    @property
    def reserved_minutes(self) -> int:
        return minutes_between(self.reserved_start, self.reserved_end)

    @property
    def before_minutes_reclaimed(self) -> int:
        return self.before_minutes if self.before else 0

    @property
    def after_minutes_reclaimed(self) -> int:
        return self.after_minutes if self.after else 0

    @property
    def discarded_minutes(self) -> int:
        return (self.before_minutes - self.before_minutes_reclaimed) + (
            self.after_minutes - self.after_minutes_reclaimed
        )

    @property
    def fragments(self) -> List[Tuple[datetime, datetime]]:
        return [f for f in (self.before, self.after) if f is not None]


def plan_split(
    window_start: datetime,
    window_end: datetime,
    start: datetime,
    end: datetime,
    min_remainder: int = MIN_REMAINDER_MINUTES,
) -> SlotSplit:
    """
    Compute the fragments left over after reserving [start, end) inside a window.

    Raises:
        ValueError: If the window does not fully contain the interval
    """
    if not (window_start <= start < end <= window_end):
        raise ValueError(
            f"Interval {start}->{end} is not contained in window {window_start}->{window_end}"
        )

    before_minutes = minutes_between(window_start, start)
    after_minutes = minutes_between(end, window_end)

    before = (window_start, start) if before_minutes >= min_remainder else None
    after = (end, window_end) if after_minutes >= min_remainder else None

    return SlotSplit(
        window_start=window_start,
        window_end=window_end,
        reserved_start=start,
        reserved_end=end,
        before=before,
        after=after,
        before_minutes=before_minutes,
        after_minutes=after_minutes,
    )


def _required_tags_present(provider: Provider, required: Dict[str, Optional[str]]) -> bool:
    for column, value in required.items():
        if value is None:
            continue
        if value not in (getattr(provider, column) or []):
            return False
    return True


class AvailabilityStore:
    """Window queries and mutations; every method works inside the caller's session"""

    def __init__(self, min_remainder_minutes: int = MIN_REMAINDER_MINUTES):
        self.min_remainder_minutes = min_remainder_minutes

    async def add_window(
        self,
        session: AsyncSession,
        provider_id: int,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> AvailabilityWindow:
        """
        Publish a new free window for an approved provider.

        Raises:
            BookingRejected: INVALID_INPUT for bad bounds, unknown or unapproved
                provider, or overlap with a free window or a scheduled session
                of the provider
        """
        if start >= end:
            raise BookingRejected(RejectionReason.INVALID_INPUT, "Start time must be before end time")
        if start <= now:
            raise BookingRejected(RejectionReason.INVALID_INPUT, "Availability must start in the future")

        provider = await session.get(Provider, provider_id)
        if provider is None:
            raise BookingRejected(RejectionReason.INVALID_INPUT, "Provider profile not found")
        if not provider.is_approved:
            raise BookingRejected(
                RejectionReason.INVALID_INPUT,
                "Your profile must be approved before adding availability",
            )

        overlap = await session.execute(
            select(AvailabilityWindow.id).where(
                AvailabilityWindow.provider_id == provider_id,
                AvailabilityWindow.is_booked.is_(False),
                AvailabilityWindow.start_time < end,
                AvailabilityWindow.end_time > start,
            ).limit(1)
        )
        if overlap.scalar() is not None:
            raise BookingRejected(
                RejectionReason.INVALID_INPUT,
                "Window overlaps one of your existing windows",
            )
        if await self.scheduled_overlap(session, provider_id, start, end) is not None:
            raise BookingRejected(
                RejectionReason.INVALID_INPUT,
                "Window overlaps one of your scheduled sessions",
            )

        window = AvailabilityWindow(provider_id=provider_id, start_time=start, end_time=end, is_booked=False)
        session.add(window)
        await session.flush()

        logger.info(f"Provider {provider_id} published window {window.id}: {start} -> {end}")
        return window

    async def scheduled_overlap(
        self,
        session: AsyncSession,
        provider_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Booking]:
        """
        First scheduled booking of the provider whose reserved interval
        intersects [start, end), if any.

        A booked window keeps its whole original span, so the reserved time is
        taken from the bookings rather than from booked windows.
        """
        query = select(Booking).where(
            Booking.provider_id == provider_id,
            Booking.status == BookingStatus.SCHEDULED.value,
            Booking.scheduled_start < end,
            Booking.scheduled_start > start - timedelta(minutes=MAX_SESSION_MINUTES),
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await session.execute(query.order_by(Booking.scheduled_start))
        for booking in result.scalars().all():
            if booking.scheduled_end > start:
                return booking
        return None

    async def list_windows(
        self,
        session: AsyncSession,
        provider_id: int,
        include_booked: bool = True,
    ) -> List[AvailabilityWindow]:
        query = select(AvailabilityWindow).where(AvailabilityWindow.provider_id == provider_id)
        if not include_booked:
            query = query.where(AvailabilityWindow.is_booked.is_(False))
        result = await session.execute(query.order_by(AvailabilityWindow.start_time, AvailabilityWindow.id))
        return list(result.scalars().all())

    async def delete_window(self, session: AsyncSession, provider_id: int, window_id: int) -> bool:
        """Remove a window owned by the provider; booked windows are never removed"""
        result = await session.execute(
            delete(AvailabilityWindow).where(
                AvailabilityWindow.id == window_id,
                AvailabilityWindow.provider_id == provider_id,
                AvailabilityWindow.is_booked.is_(False),
            )
        )
        deleted = result.rowcount == 1
        if deleted:
            logger.info(f"Provider {provider_id} removed window {window_id}")
        return deleted

    async def find_covering_windows(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
        kind: SessionKind,
        required_tags: Optional[Dict[str, Optional[str]]] = None,
        provider_id: Optional[int] = None,
    ) -> Dict[int, Tuple[Provider, List[AvailabilityWindow]]]:
        """
        Free windows fully covering [start, end], grouped by eligible provider.

        Eligibility: approved, offers `kind`, and carries every tag in
        `required_tags` (column name -> required value). Tag membership is
        checked in Python so the query stays portable across databases.
        """
        query = (
            select(Provider, AvailabilityWindow)
            .join(AvailabilityWindow, AvailabilityWindow.provider_id == Provider.id)
            .where(
                and_(
                    Provider.status == ProviderStatus.APPROVED.value,
                    AvailabilityWindow.is_booked.is_(False),
                    AvailabilityWindow.start_time <= start,
                    AvailabilityWindow.end_time >= end,
                )
            )
            .order_by(Provider.id, AvailabilityWindow.start_time)
        )
        if provider_id is not None:
            query = query.where(Provider.id == provider_id)

        result = await session.execute(query)

        grouped: Dict[int, Tuple[Provider, List[AvailabilityWindow]]] = {}
        for provider, window in result.all():
            if not provider.offers(kind):
                continue
            if required_tags and not _required_tags_present(provider, required_tags):
                continue
            grouped.setdefault(provider.id, (provider, []))[1].append(window)
        return grouped

    async def reserve(
        self,
        session: AsyncSession,
        window_id: int,
        start: datetime,
        end: datetime,
    ) -> SlotSplit:
        """
        Consume a window for [start, end) and create the surviving fragments.

        Must run inside the caller's transaction together with the booking
        insert and the quota increment. The window is re-validated here; if a
        concurrent request consumed or removed it, nothing is written.

        Raises:
            BookingRejected: NO_AVAILABLE_SLOT if the window is gone, booked,
                or no longer covers the interval
        """
        result = await session.execute(
            select(AvailabilityWindow)
            .where(AvailabilityWindow.id == window_id)
            .with_for_update()
        )
        window = result.scalar_one_or_none()
        if window is None or window.is_booked or not window_covers(window, start, end):
            raise BookingRejected(
                RejectionReason.NO_AVAILABLE_SLOT,
                "The selected slot is no longer available. Please try a different time.",
            )

        # Compare-and-set so a racing writer in another process cannot also win
        claimed = await session.execute(
            update(AvailabilityWindow)
            .where(AvailabilityWindow.id == window_id, AvailabilityWindow.is_booked.is_(False))
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise BookingRejected(
                RejectionReason.NO_AVAILABLE_SLOT,
                "The selected slot is no longer available. Please try a different time.",
            )

        split = plan_split(window.start_time, window.end_time, start, end, self.min_remainder_minutes)
        for fragment_start, fragment_end in split.fragments:
            session.add(
                AvailabilityWindow(
                    provider_id=window.provider_id,
                    start_time=fragment_start,
                    end_time=fragment_end,
                    is_booked=False,
                )
            )
        await session.flush()

        logger.debug(
            f"Reserved window {window_id} {start}->{end}: "
            f"kept {split.before_minutes_reclaimed}+{split.after_minutes_reclaimed} min, "
            f"dropped {split.discarded_minutes} min"
        )
        return split

    async def list_guidance_providers(
        self,
        session: AsyncSession,
        now: datetime,
    ) -> List[Tuple[Provider, List[AvailabilityWindow]]]:
        """Approved guidance providers with their future free windows"""
        providers = await session.execute(
            select(Provider)
            .where(Provider.status == ProviderStatus.APPROVED.value)
            .order_by(Provider.id)
        )
        guidance = [p for p in providers.scalars().all() if p.offers(SessionKind.GUIDANCE)]
        if not guidance:
            return []

        windows = await session.execute(
            select(AvailabilityWindow)
            .where(
                AvailabilityWindow.provider_id.in_([p.id for p in guidance]),
                AvailabilityWindow.is_booked.is_(False),
                AvailabilityWindow.start_time >= now,
            )
            .order_by(AvailabilityWindow.start_time)
        )
        by_provider: Dict[int, List[AvailabilityWindow]] = {p.id: [] for p in guidance}
        for window in windows.scalars().all():
            by_provider[window.provider_id].append(window)
        return [(p, by_provider[p.id]) for p in guidance]

