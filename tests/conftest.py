"""
Shared fixtures

Integration tests run against a temporary-file SQLite database (aiosqlite) so
that every session gets its own connection, as it would against PostgreSQL.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401  registers every table on Base.metadata
from app.database import Base
from app.models.availability_window import AvailabilityWindow
from app.models.booking import Booking
from app.models.consumer_profile import ConsumerProfile
from app.models.enums import BookingStatus, ProviderStatus, SessionKind
from app.models.provider import Provider
from app.services.allocator import Allocator
from app.services.booking_notifier import BookingNotifier

# Fixed "now" for the engine clock: a Monday morning well in the future
NOW = datetime(2031, 3, 3, 8, 0)


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """Instant on NOW's date (plus `days`)"""
    return (NOW + timedelta(days=days)).replace(hour=hour, minute=minute)


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class Seeder:
    """Inserts fixture rows, each in its own committed transaction"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _save(self, obj):
        async with self.session_factory() as session:
            async with session.begin():
                session.add(obj)
            return obj

    async def provider(self, **overrides: Any) -> Provider:
        values: Dict[str, Any] = {
            "display_name": "Test Provider",
            "status": ProviderStatus.APPROVED.value,
            "roles_supported": ["Backend Engineer"],
            "difficulty_levels": ["easy", "medium", "hard"],
            "interview_types": ["technical", "hr", "behavioral", "system_design"],
            "session_kinds_offered": [SessionKind.INTERVIEW.value, SessionKind.GUIDANCE.value],
            "years_of_experience": 4,
        }
        values.update(overrides)
        return await self._save(Provider(**values))

    async def consumer(self, **overrides: Any) -> ConsumerProfile:
        values: Dict[str, Any] = {"display_name": "Test Consumer"}
        values.update(overrides)
        return await self._save(ConsumerProfile(**values))

    async def window(self, provider_id: int, start: datetime, end: datetime, is_booked: bool = False) -> AvailabilityWindow:
        return await self._save(
            AvailabilityWindow(provider_id=provider_id, start_time=start, end_time=end, is_booked=is_booked)
        )

    async def booking(self, consumer_id: int, provider_id: int, start: datetime, **overrides: Any) -> Booking:
        values: Dict[str, Any] = {
            "consumer_id": consumer_id,
            "provider_id": provider_id,
            "session_kind": SessionKind.INTERVIEW.value,
            "scheduled_start": start,
            "duration_minutes": 60,
            "status": BookingStatus.SCHEDULED.value,
        }
        values.update(overrides)
        return await self._save(Booking(**values))


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


class RecordingSender:
    """Notification sender that remembers every payload"""

    def __init__(self, fail: bool = False):
        self.payloads: List[Dict[str, Any]] = []
        self.fail = fail

    async def __call__(self, payload: Dict[str, Any]) -> None:
        self.payloads.append(payload)
        if self.fail:
            raise ConnectionError("mail relay unreachable")


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def allocator(session_factory, sender) -> Allocator:
    return Allocator(
        session_factory=session_factory,
        notifier=BookingNotifier(sender=sender),
        clock=lambda: NOW,
    )


def make_allocator(session_factory, store=None, ledger=None, sender: Optional[RecordingSender] = None) -> Allocator:
    """Allocator with swapped collaborators, for tests that inject failures or gates"""
    return Allocator(
        session_factory=session_factory,
        store=store,
        ledger=ledger,
        notifier=BookingNotifier(sender=sender or RecordingSender()),
        clock=lambda: NOW,
    )
