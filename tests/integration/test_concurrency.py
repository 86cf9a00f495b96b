"""
Concurrency tests for the booking critical section

Racing requests are held at a gate after their unlocked reads, so every
request selects the same window or passes the same quota pre-check before
any of them commits.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from app.models.availability_window import AvailabilityWindow
from app.models.booking import Booking
from app.models.consumer_profile import ConsumerProfile
from app.services.availability_store import AvailabilityStore
from app.services.booking_outcomes import RejectionReason

from conftest import at, make_allocator

pytestmark = pytest.mark.integration


class GatedStore(AvailabilityStore):
    """Releases candidate reads only once `parties` requests have made them"""

    def __init__(self, parties: int):
        super().__init__()
        self.parties = parties
        self.arrived = 0
        self.gate = asyncio.Event()

    async def _arrive(self):
        self.arrived += 1
        if self.arrived >= self.parties:
            self.gate.set()
        await asyncio.wait_for(self.gate.wait(), timeout=5)

    async def find_covering_windows(self, *args, **kwargs):
        result = await super().find_covering_windows(*args, **kwargs)
        await self._arrive()
        return result

    async def list_windows(self, *args, **kwargs):
        result = await super().list_windows(*args, **kwargs)
        await self._arrive()
        return result


async def count(session_factory, query):
    async with session_factory() as session:
        return (await session.execute(query)).scalar_one()


class TestSameWindowRace:
    """Two requests for the sole remaining window"""

    async def test_exactly_one_interview_commits(self, seed, session_factory):
        provider = await seed.provider()
        await seed.window(provider.id, at(10, days=1), at(11, days=1))
        first = await seed.consumer(display_name="First")
        second = await seed.consumer(display_name="Second")
        allocator = make_allocator(session_factory, store=GatedStore(parties=2))

        outcomes = await asyncio.gather(*(
            allocator.book_structured_session(c.id, "Backend Engineer", "easy", "technical", 60, at(10, days=1))
            for c in (first, second)
        ))

        confirmed = [o for o in outcomes if o.ok]
        rejected = [o for o in outcomes if not o.ok]
        assert len(confirmed) == 1
        assert len(rejected) == 1
        assert rejected[0].reason == RejectionReason.NO_AVAILABLE_SLOT

        assert await count(session_factory, select(func.count(Booking.id))) == 1
        loser_id = second.id if confirmed[0].consumer_id == first.id else first.id
        async with session_factory() as session:
            loser = await session.get(ConsumerProfile, loser_id)
        assert loser.interviews_used == 0

    async def test_exactly_one_guidance_commits(self, seed, session_factory):
        mentor = await seed.provider()
        await seed.window(mentor.id, at(14, days=1), at(15, days=1))
        consumers = [await seed.consumer(display_name=f"C{i}") for i in range(3)]
        allocator = make_allocator(session_factory, store=GatedStore(parties=3))

        outcomes = await asyncio.gather(*(
            allocator.book_unstructured_session(c.id, mentor.id, "Negotiation", 30, at(14, days=1))
            for c in consumers
        ))

        assert sum(1 for o in outcomes if o.ok) == 1
        assert all(o.reason == RejectionReason.NO_AVAILABLE_SLOT for o in outcomes if not o.ok)
        # 30 minutes after the reservation survive as one new free window
        free = select(func.count(AvailabilityWindow.id)).where(AvailabilityWindow.is_booked.is_(False))
        assert await count(session_factory, free) == 1

    async def test_ungated_burst_never_double_books(self, allocator, seed, session_factory):
        provider = await seed.provider()
        await seed.window(provider.id, at(10, days=1), at(11, days=1))
        consumers = [await seed.consumer(display_name=f"C{i}") for i in range(5)]

        outcomes = await asyncio.gather(*(
            allocator.book_structured_session(c.id, "Backend Engineer", "easy", "technical", 60, at(10, days=1))
            for c in consumers
        ))

        assert sum(1 for o in outcomes if o.ok) == 1
        assert {o.reason for o in outcomes if not o.ok} <= {
            RejectionReason.NO_AVAILABLE_SLOT,
            RejectionReason.NO_ELIGIBLE_PROVIDER,
        }
        assert await count(session_factory, select(func.count(Booking.id))) == 1


class TestSameConsumerQuotaRace:
    """Two bookings by one consumer with a single interview left"""

    async def test_only_one_passes_quota(self, seed, session_factory):
        consumer = await seed.consumer(interviews_used=4, interviews_limit=5)
        morning = await seed.provider(display_name="Morning")
        afternoon = await seed.provider(display_name="Afternoon")
        await seed.window(morning.id, at(9, days=1), at(10, days=1))
        await seed.window(afternoon.id, at(14, days=1), at(15, days=1))
        allocator = make_allocator(session_factory, store=GatedStore(parties=2))

        outcomes = await asyncio.gather(
            allocator.book_structured_session(consumer.id, "Backend Engineer", "easy", "technical", 60, at(9, days=1)),
            allocator.book_structured_session(consumer.id, "Backend Engineer", "easy", "technical", 60, at(14, days=1)),
        )

        assert sum(1 for o in outcomes if o.ok) == 1
        rejection = next(o for o in outcomes if not o.ok)
        assert rejection.reason == RejectionReason.LIMIT_REACHED
        assert rejection.details["used"] == 5
        assert rejection.details["limit"] == 5

        async with session_factory() as session:
            profile = await session.get(ConsumerProfile, consumer.id)
        assert profile.interviews_used == 5
        assert await count(session_factory, select(func.count(Booking.id))) == 1
