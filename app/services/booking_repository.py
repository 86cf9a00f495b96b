"""
Booking Repository

Read access to booking records, kept apart from the allocator so API routes
and the candidate query share one implementation.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.enums import BookingStatus


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: int) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id)

    async def list_for_consumer(self, consumer_id: int) -> List[Booking]:
        result = await self.session.execute(
            select(Booking)
            .where(Booking.consumer_id == consumer_id)
            .order_by(Booking.scheduled_start.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_provider(self, provider_id: int) -> List[Booking]:
        result = await self.session.execute(
            select(Booking)
            .where(Booking.provider_id == provider_id)
            .order_by(Booking.scheduled_start.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())

    async def upcoming_counts(self, provider_ids: Iterable[int], now: datetime) -> Dict[int, int]:
        """Scheduled bookings starting at or after `now`, per provider"""
        ids = list(provider_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Booking.provider_id, func.count(Booking.id))
            .where(
                Booking.provider_id.in_(ids),
                Booking.status == BookingStatus.SCHEDULED.value,
                Booking.scheduled_start >= now,
            )
            .group_by(Booking.provider_id)
        )
        counts = {provider_id: 0 for provider_id in ids}
        counts.update({provider_id: count for provider_id, count in result.all()})
        return counts
