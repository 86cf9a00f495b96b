"""
Quota Ledger

Per-consumer monthly usage counters for the two session buckets (interview,
guidance), checked against the limits of the consumer's plan tier.

Rules:
    - An elevated plan whose expiry has passed falls back to base-tier
      defaults (usage zeroed, limits lowered, expiry cleared) before any
      other rule is applied. The reset is idempotent and applied lazily.
    - Usage only moves through `increment`, inside the same transaction that
      creates the booking.
    - Upgrading starts a fresh month from max(now, current expiry): usage is
      zeroed and elevated limits applied, never accumulated.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import (
    BASE_INTERVIEW_LIMIT,
    BASE_GUIDANCE_LIMIT,
    ELEVATED_INTERVIEW_LIMIT,
    ELEVATED_GUIDANCE_LIMIT,
)
from app.models.consumer_profile import ConsumerProfile
from app.models.enums import PlanTier, SessionKind, SubscriptionStatus
from app.models.subscription import Subscription
from app.services.booking_outcomes import BookingRejected, RejectionReason
from app.services.keyed_locks import KeyedLocks, consumer_key

logger = logging.getLogger(__name__)

TIER_LIMITS: Dict[PlanTier, Dict[SessionKind, int]] = {
    PlanTier.BASE: {
        SessionKind.INTERVIEW: BASE_INTERVIEW_LIMIT,
        SessionKind.GUIDANCE: BASE_GUIDANCE_LIMIT,
    },
    PlanTier.ELEVATED: {
        SessionKind.INTERVIEW: ELEVATED_INTERVIEW_LIMIT,
        SessionKind.GUIDANCE: ELEVATED_GUIDANCE_LIMIT,
    },
}

# Profile columns backing each bucket: (usage, limit)
BUCKET_COLUMNS: Dict[SessionKind, Tuple[str, str]] = {
    SessionKind.INTERVIEW: ("interviews_used", "interviews_limit"),
    SessionKind.GUIDANCE: ("guidance_used", "guidance_limit"),
}


@dataclass(frozen=True)
class QuotaState:
    plan_type: PlanTier
    interviews_used: int
    interviews_limit: int
    guidance_used: int
    guidance_limit: int
    plan_expires_at: Optional[datetime] = None

    @classmethod
    def from_profile(cls, profile: ConsumerProfile) -> "QuotaState":
        return cls(
            plan_type=PlanTier(profile.plan_type),
            interviews_used=profile.interviews_used,
            interviews_limit=profile.interviews_limit,
            guidance_used=profile.guidance_used,
            guidance_limit=profile.guidance_limit,
            plan_expires_at=profile.plan_expires_at,
        )

    def apply_to(self, profile: ConsumerProfile) -> None:
        profile.plan_type = self.plan_type.value
        profile.interviews_used = self.interviews_used
        profile.interviews_limit = self.interviews_limit
        profile.guidance_used = self.guidance_used
        profile.guidance_limit = self.guidance_limit
        profile.plan_expires_at = self.plan_expires_at

    def used(self, bucket: SessionKind) -> int:
        return getattr(self, BUCKET_COLUMNS[bucket][0])

    def limit(self, bucket: SessionKind) -> int:
        return getattr(self, BUCKET_COLUMNS[bucket][1])

    def to_dict(self) -> Dict:
        return {
            "planType": self.plan_type.value,
            "interviewsUsed": self.interviews_used,
            "interviewsLimit": self.interviews_limit,
            "guidanceUsed": self.guidance_used,
            "guidanceLimit": self.guidance_limit,
            "planExpiresAt": self.plan_expires_at.isoformat() if self.plan_expires_at else None,
        }


def fresh_state(tier: PlanTier, expires_at: Optional[datetime] = None) -> QuotaState:
    """Zeroed usage with the tier's limits"""
    limits = TIER_LIMITS[tier]
    return QuotaState(
        plan_type=tier,
        interviews_used=0,
        interviews_limit=limits[SessionKind.INTERVIEW],
        guidance_used=0,
        guidance_limit=limits[SessionKind.GUIDANCE],
        plan_expires_at=expires_at,
    )


def is_expired(state: QuotaState, now: datetime) -> bool:
    return (
        state.plan_type == PlanTier.ELEVATED
        and state.plan_expires_at is not None
        and state.plan_expires_at < now
    )


def check_and_reset(state: QuotaState, now: datetime) -> QuotaState:
    """Downgrade an expired elevated plan to base defaults; otherwise unchanged"""
    if is_expired(state, now):
        return fresh_state(PlanTier.BASE)
    return state


def has_capacity(state: QuotaState, bucket: SessionKind) -> bool:
    return state.used(bucket) < state.limit(bucket)


def upgraded(state: QuotaState, now: datetime) -> Tuple[QuotaState, datetime, datetime]:
    """
    Apply one paid month on top of the current state.

    Returns:
        (new_state, valid_from, valid_until)
    """
    current_expiry = state.plan_expires_at
    valid_from = current_expiry if current_expiry and current_expiry > now else now
    valid_until = valid_from + relativedelta(months=1)
    return fresh_state(PlanTier.ELEVATED, expires_at=valid_until), valid_from, valid_until


def limit_reached(state: QuotaState, bucket: SessionKind) -> BookingRejected:
    """Build the LIMIT_REACHED rejection carrying what the caller needs for an upgrade prompt"""
    used, limit = state.used(bucket), state.limit(bucket)
    if state.plan_type == PlanTier.BASE:
        message = f"You have used all {limit} free {bucket.value} sessions. Upgrade your plan to get more."
    else:
        message = f"You have used all {limit} {bucket.value} sessions for this month. Renew your plan to continue."
    return BookingRejected(
        RejectionReason.LIMIT_REACHED,
        message,
        used=used,
        limit=limit,
        planType=state.plan_type.value,
        bucket=bucket.value,
    )


@dataclass(frozen=True)
class UpgradeResult:
    subscription_id: int
    state: QuotaState
    valid_from: datetime
    valid_until: datetime
    already_processed: bool = False


class QuotaLedger:
    """Quota reads and writes against consumer profiles"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        locks: KeyedLocks,
        clock: Callable[[], datetime],
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.clock = clock

    async def load_profile(
        self,
        session: AsyncSession,
        consumer_id: int,
        for_update: bool = False,
    ) -> ConsumerProfile:
        """
        Raises:
            BookingRejected: INVALID_INPUT when the consumer has no profile
        """
        query = select(ConsumerProfile).where(ConsumerProfile.id == consumer_id)
        if for_update:
            query = query.with_for_update()
        result = await session.execute(query)
        profile = result.scalar_one_or_none()
        if profile is None:
            raise BookingRejected(RejectionReason.INVALID_INPUT, "Please complete your profile first")
        return profile

    def refresh(self, profile: ConsumerProfile, now: datetime) -> QuotaState:
        """Apply the expiry reset to a loaded profile (written on the next flush)"""
        state = QuotaState.from_profile(profile)
        current = check_and_reset(state, now)
        if current != state:
            current.apply_to(profile)
            logger.info(
                f"Consumer {profile.id} plan expired at {state.plan_expires_at}; reset to base tier"
            )
        return current

    def ensure_capacity(self, state: QuotaState, bucket: SessionKind) -> None:
        if not has_capacity(state, bucket):
            raise limit_reached(state, bucket)

    async def increment(self, session: AsyncSession, consumer_id: int, state: QuotaState, bucket: SessionKind) -> int:
        """
        Add one use to the bucket. Only call inside the booking transaction.

        The UPDATE is conditional on usage still being under the limit, so a
        stale read can never push the counter past it.

        Returns:
            The new usage count

        Raises:
            BookingRejected: LIMIT_REACHED if the guarded update matched no row
        """
        used_column, limit_column = BUCKET_COLUMNS[bucket]
        used = getattr(ConsumerProfile, used_column)
        limit = getattr(ConsumerProfile, limit_column)

        # Pending reset values must reach the database before the guarded update
        await session.flush()
        result = await session.execute(
            update(ConsumerProfile)
            .where(ConsumerProfile.id == consumer_id, used < limit)
            .values({used_column: used + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise limit_reached(state, bucket)
        return state.used(bucket) + 1

    async def get_usage(self, consumer_id: int) -> QuotaState:
        """Current quota, persisting the expiry reset if it is due"""
        async with self.locks.hold(consumer_key(consumer_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    profile = await self.load_profile(session, consumer_id, for_update=True)
                    return self.refresh(profile, self.clock())

    async def upgrade(self, consumer_id: int, reference: str) -> UpgradeResult:
        """
        Record a paid month for the consumer.

        Idempotent per payment reference: replaying a reference returns the
        original subscription without touching the profile again.

        Raises:
            BookingRejected: INVALID_INPUT for an unknown consumer, or a
                reference that already belongs to another consumer
        """
        async with self.locks.hold(consumer_key(consumer_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    existing = await session.execute(
                        select(Subscription).where(Subscription.reference == reference)
                    )
                    subscription = existing.scalar_one_or_none()
                    profile = await self.load_profile(session, consumer_id, for_update=True)

                    if subscription is not None:
                        if subscription.consumer_id != consumer_id:
                            raise BookingRejected(
                                RejectionReason.INVALID_INPUT,
                                "Payment reference belongs to another account",
                            )
                        logger.info(f"Subscription {reference} already processed; skipping")
                        return UpgradeResult(
                            subscription_id=subscription.id,
                            state=QuotaState.from_profile(profile),
                            valid_from=subscription.valid_from,
                            valid_until=subscription.valid_until,
                            already_processed=True,
                        )

                    now = self.clock()
                    current = self.refresh(profile, now)
                    new_state, valid_from, valid_until = upgraded(current, now)
                    new_state.apply_to(profile)

                    subscription = Subscription(
                        consumer_id=consumer_id,
                        reference=reference,
                        plan_type=PlanTier.ELEVATED.value,
                        status=SubscriptionStatus.PAID.value,
                        valid_from=valid_from,
                        valid_until=valid_until,
                    )
                    session.add(subscription)
                    await session.flush()

            logger.info(f"Consumer {consumer_id} upgraded until {valid_until} (ref={reference})")
            return UpgradeResult(
                subscription_id=subscription.id,
                state=new_state,
                valid_from=valid_from,
                valid_until=valid_until,
            )

    async def sweep_expired_plans(self) -> int:
        """
        Downgrade every elevated plan whose expiry has passed.

        Same effect as the lazy reset, applied in bulk.

        Returns:
            Number of profiles reset
        """
        now = self.clock()
        base = fresh_state(PlanTier.BASE)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(ConsumerProfile)
                    .where(
                        ConsumerProfile.plan_type == PlanTier.ELEVATED.value,
                        ConsumerProfile.plan_expires_at.is_not(None),
                        ConsumerProfile.plan_expires_at < now,
                    )
                    .values(
                        plan_type=base.plan_type.value,
                        interviews_used=0,
                        interviews_limit=base.interviews_limit,
                        guidance_used=0,
                        guidance_limit=base.guidance_limit,
                        plan_expires_at=None,
                    )
                    .execution_options(synchronize_session=False)
                )
        reset_count = result.rowcount
        logger.info(f"Plan sweep reset {reset_count} expired plans")
        return reset_count

