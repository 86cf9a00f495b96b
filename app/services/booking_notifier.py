"""
Booking Notifier

Fire-and-forget delivery of booking confirmations. Delivery runs as a
background task so the booking result never waits on it, and a failed
delivery is logged without touching the committed booking.
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from app.config import BOOKING_EVENTS_CHANNEL
from app.database import get_redis

logger = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], Awaitable[None]]


async def publish_to_redis(payload: Dict[str, Any]) -> None:
    """Publish a confirmation on the booking events channel for the email worker"""
    redis = get_redis()
    if redis is None:
        logger.info(f"Redis not initialised; booking confirmation not published: {payload}")
        return
    await redis.publish(BOOKING_EVENTS_CHANNEL, json.dumps(payload, default=str))
    logger.debug(f"Published booking {payload.get('booking_id')} to {BOOKING_EVENTS_CHANNEL}")


class BookingNotifier:
    """Schedules confirmation delivery in the background"""

    def __init__(self, sender: Optional[Sender] = None):
        self.sender = sender or publish_to_redis
        self._pending: Set[asyncio.Task] = set()

    def notify(self, payload: Dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; skipping confirmation for booking {payload.get('booking_id')}")
            return
        task = loop.create_task(self._deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, payload: Dict[str, Any]) -> None:
        try:
            await self.sender(payload)
        except Exception as e:
            logger.warning(f"Booking confirmation for {payload.get('booking_id')} failed: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
