"""Time helpers; the booking engine works in naive UTC throughout"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
