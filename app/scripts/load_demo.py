"""
Demo Scenario Loader

Loads pre-configured demo scenarios for consistent presentations.
Usage: python -m app.scripts.load_demo --scenario marketplace
"""
import asyncio
import argparse
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database import AsyncSessionLocal
from app.models.availability_window import AvailabilityWindow
from app.models.booking import Booking
from app.models.consumer_profile import ConsumerProfile
from app.models.enums import PlanTier, ProviderStatus, SessionKind
from app.models.provider import Provider
from app.models.subscription import Subscription
from app.services.quota_ledger import fresh_state
from app.utils.timeutils import utcnow

ALL_KINDS = [SessionKind.INTERVIEW.value, SessionKind.GUIDANCE.value]


def _next_morning(now: datetime, days: int, hour: int) -> datetime:
    return (now + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


async def clear_demo_data(session_factory: async_sessionmaker = AsyncSessionLocal):
    """Clear all existing data, children first"""
    async with session_factory() as session:
        async with session.begin():
            for model in (Booking, Subscription, AvailabilityWindow, ConsumerProfile, Provider):
                await session.execute(delete(model))
    print("✓ Cleared existing data")


async def load_marketplace_scenario(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Load the Marketplace scenario.

    Scenario: six approved providers with a week of morning and afternoon
    windows, one provider still pending review, and three base-tier consumers.
    """
    print("\nLoading Marketplace scenario...")
    now = now or utcnow()

    specs = [
        ("Asha Rao", ["Backend Engineer", "Data Engineer"], ["medium", "hard"], ["technical", "system_design"], ALL_KINDS, 12),
        ("Ben Ortiz", ["Frontend Engineer"], ["easy", "medium"], ["technical", "behavioral"], ALL_KINDS, 6),
        ("Chen Wei", ["Product Manager"], ["easy", "medium", "hard"], ["hr", "behavioral"], [SessionKind.INTERVIEW.value], 9),
        ("Dana Kim", ["Backend Engineer"], ["easy", "medium"], ["technical"], [SessionKind.INTERVIEW.value], 3),
        ("Eli Novak", ["Data Scientist", "ML Engineer"], ["medium", "hard"], ["technical"], ALL_KINDS, 15),
        ("Fatima Haddad", ["Engineering Manager"], ["hard"], ["behavioral", "system_design"], [SessionKind.GUIDANCE.value], 20),
    ]

    async with session_factory() as session:
        async with session.begin():
            providers = []
            for name, roles, levels, types, kinds, years in specs:
                provider = Provider(
                    display_name=name,
                    email=f"{name.split()[0].lower()}@example.com",
                    status=ProviderStatus.APPROVED.value,
                    roles_supported=roles,
                    difficulty_levels=levels,
                    interview_types=types,
                    session_kinds_offered=kinds,
                    years_of_experience=years,
                )
                providers.append(provider)
                session.add(provider)

            session.add(Provider(
                display_name="Gus Pending",
                status=ProviderStatus.PENDING.value,
                roles_supported=["Backend Engineer"],
                difficulty_levels=["easy"],
                interview_types=["technical"],
                session_kinds_offered=ALL_KINDS,
            ))
            await session.flush()
            print(f"  Created {len(providers)} approved providers and 1 pending")

            windows = 0
            for day in range(1, 8):
                for provider in providers:
                    session.add(AvailabilityWindow(
                        provider_id=provider.id,
                        start_time=_next_morning(now, day, 9),
                        end_time=_next_morning(now, day, 12),
                        is_booked=False,
                    ))
                    session.add(AvailabilityWindow(
                        provider_id=provider.id,
                        start_time=_next_morning(now, day, 14),
                        end_time=_next_morning(now, day, 15),
                        is_booked=False,
                    ))
                    windows += 2
            print(f"  Created {windows} availability windows over the next 7 days")

            for name in ("Priya", "Quinn", "Rafael"):
                session.add(ConsumerProfile(display_name=name, email=f"{name.lower()}@example.com"))
            print("  Created 3 base-tier consumers")

    print("  ✓ Marketplace scenario loaded")
    return {"providers": len(providers) + 1, "windows": windows, "consumers": 3}


async def load_quota_edge_scenario(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Load the Quota Edge scenario.

    Scenario: one consumer a single interview short of the base limit, one
    elevated consumer whose plan lapsed yesterday, one mentor with an open day.
    """
    print("\nLoading Quota Edge scenario...")
    now = now or utcnow()

    async with session_factory() as session:
        async with session.begin():
            mentor = Provider(
                display_name="Iris Lund",
                status=ProviderStatus.APPROVED.value,
                roles_supported=["Backend Engineer"],
                difficulty_levels=["easy", "medium", "hard"],
                interview_types=["technical", "hr", "behavioral", "system_design"],
                session_kinds_offered=ALL_KINDS,
                years_of_experience=8,
            )
            session.add(mentor)
            await session.flush()
            session.add(AvailabilityWindow(
                provider_id=mentor.id,
                start_time=_next_morning(now, 1, 9),
                end_time=_next_morning(now, 1, 17),
                is_booked=False,
            ))

            near_limit = ConsumerProfile(display_name="Near Limit")
            fresh_state(PlanTier.BASE).apply_to(near_limit)
            near_limit.interviews_used = near_limit.interviews_limit - 1
            session.add(near_limit)

            lapsed = ConsumerProfile(display_name="Lapsed Elevated")
            fresh_state(PlanTier.ELEVATED, expires_at=now - timedelta(days=1)).apply_to(lapsed)
            lapsed.interviews_used = lapsed.interviews_limit
            session.add(lapsed)

    print("  ✓ Quota Edge scenario loaded")
    print("  Expected: 'Near Limit' can book one more interview; 'Lapsed Elevated' is reset on next booking")
    return {"providers": 1, "windows": 1, "consumers": 2}


SCENARIOS: Dict[str, Callable] = {
    "marketplace": load_marketplace_scenario,
    "quota_edge": load_quota_edge_scenario,
}


async def load_scenario(scenario_name: str, session_factory: async_sessionmaker = AsyncSessionLocal):
    """
    Load a demo scenario.

    Args:
        scenario_name: Name of scenario to load
    """
    if scenario_name not in SCENARIOS:
        print(f"ERROR: Unknown scenario '{scenario_name}'")
        print(f"Available scenarios: {', '.join(SCENARIOS.keys())}")
        return None

    await clear_demo_data(session_factory)

    counts = await SCENARIOS[scenario_name](session_factory)

    print(f"\n✅ Scenario '{scenario_name}' loaded successfully!")
    return counts


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo scenarios")
    parser.add_argument(
        "--scenario",
        "-s",
        choices=sorted(SCENARIOS.keys()),
        required=True,
        help="Scenario to load"
    )

    args = parser.parse_args()
    asyncio.run(load_scenario(args.scenario))


if __name__ == "__main__":
    main()
