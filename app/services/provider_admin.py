"""
Provider Administration

Admin-side operations on providers: review status changes, listings with
upcoming-session counts, and manual reassignment of a scheduled booking to
another provider.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.booking import Booking
from app.models.enums import BookingStatus, ProviderStatus, SessionKind
from app.models.provider import Provider
from app.services.availability_store import AvailabilityStore
from app.services.booking_outcomes import BookingRejected, RejectionReason
from app.services.booking_repository import BookingRepository
from app.services.keyed_locks import KeyedLocks, provider_key

logger = logging.getLogger(__name__)

ProviderWithLoad = Tuple[Provider, int]


def ineligibility_reason(provider: Optional[Provider], booking: Booking) -> Optional[str]:
    """Why `provider` cannot take `booking`, or None when it can"""
    if provider is None or not provider.is_approved:
        return "Provider not available or not approved"

    if booking.session_kind == SessionKind.INTERVIEW.value:
        if not provider.offers(SessionKind.INTERVIEW):
            return "Provider does not offer interview sessions"
        if booking.role and booking.role not in (provider.roles_supported or []):
            return "Provider does not support this role"
        if booking.difficulty and booking.difficulty not in (provider.difficulty_levels or []):
            return "Provider does not handle this difficulty level"
        if booking.interview_type and booking.interview_type not in (provider.interview_types or []):
            return "Provider does not run this interview type"
    elif not provider.offers(SessionKind.GUIDANCE):
        return "Provider does not offer guidance sessions"

    return None


class ProviderAdmin:
    """Provider review and booking reassignment"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        locks: KeyedLocks,
        store: AvailabilityStore,
        clock: Callable[[], datetime],
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.store = store
        self.clock = clock

    async def list_providers(
        self,
        session: AsyncSession,
        now: datetime,
        status: Optional[ProviderStatus] = None,
    ) -> List[ProviderWithLoad]:
        query = select(Provider).order_by(Provider.created_at.desc(), Provider.id.desc())
        if status is not None:
            query = query.where(Provider.status == status.value)
        providers = list((await session.execute(query)).scalars().all())

        counts = await BookingRepository(session).upcoming_counts([p.id for p in providers], now)
        return [(p, counts.get(p.id, 0)) for p in providers]

    async def set_provider_status(self, provider_id: int, status: ProviderStatus) -> Optional[Provider]:
        """
        Returns:
            The updated provider, or None if no such provider exists
        """
        async with self.locks.hold(provider_key(provider_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    provider = await session.get(Provider, provider_id, with_for_update=True)
                    if provider is None:
                        return None
                    previous = provider.status
                    provider.status = status.value

        logger.info(f"Provider {provider_id} status {previous} -> {status.value}")
        return provider

    async def eligible_providers(
        self,
        session: AsyncSession,
        booking: Booking,
        now: datetime,
    ) -> List[ProviderWithLoad]:
        """Approved providers, other than the current one, able to take the booking"""
        result = await session.execute(
            select(Provider)
            .where(Provider.status == ProviderStatus.APPROVED.value)
            .order_by(Provider.id)
        )
        eligible = [
            p for p in result.scalars().all()
            if p.id != booking.provider_id and ineligibility_reason(p, booking) is None
        ]
        counts = await BookingRepository(session).upcoming_counts([p.id for p in eligible], now)
        return sorted(
            ((p, counts.get(p.id, 0)) for p in eligible),
            key=lambda item: (item[1], item[0].id),
        )

    async def reassign_booking(self, booking_id: int, provider_id: int) -> Optional[Booking]:
        """
        Move a scheduled booking to another provider.

        The booking's window stays with the previous provider as consumed time
        and is detached from the booking.

        Returns:
            The updated booking, or None if no such booking exists

        Raises:
            BookingRejected: INVALID_INPUT if the booking is not scheduled, the
                provider is ineligible, or the provider has a clashing session
        """
        async with self.session_factory() as session:
            booking = await session.get(Booking, booking_id)
        if booking is None:
            return None

        previous_provider = booking.provider_id
        keys = [provider_key(provider_id)]
        if previous_provider is not None and previous_provider != provider_id:
            keys.append(provider_key(previous_provider))

        async with self.locks.hold(*keys):
            async with self.session_factory() as session:
                async with session.begin():
                    booking = await session.get(Booking, booking_id, with_for_update=True)
                    if booking is None:
                        return None
                    if booking.provider_id != previous_provider:
                        raise BookingRejected(
                            RejectionReason.INVALID_INPUT,
                            "Booking was reassigned concurrently; please retry",
                        )
                    if booking.status != BookingStatus.SCHEDULED.value:
                        raise BookingRejected(
                            RejectionReason.INVALID_INPUT,
                            "Only scheduled bookings can be reassigned",
                        )
                    if booking.provider_id == provider_id:
                        raise BookingRejected(
                            RejectionReason.INVALID_INPUT,
                            "Booking is already assigned to this provider",
                        )

                    provider = await session.get(Provider, provider_id)
                    reason = ineligibility_reason(provider, booking)
                    if reason is not None:
                        raise BookingRejected(RejectionReason.INVALID_INPUT, reason)

                    end = booking.scheduled_end
                    clash = await self.store.scheduled_overlap(
                        session, provider_id, booking.scheduled_start, end, exclude_booking_id=booking.id
                    )
                    if clash is not None:
                        raise BookingRejected(
                            RejectionReason.INVALID_INPUT,
                            f"Provider already has session {clash.id} at that time",
                        )

                    booking.provider_id = provider_id
                    booking.window_id = None

        logger.info(f"Booking {booking_id} reassigned from provider {previous_provider} to {provider_id}")
        return booking
