"""SQLAlchemy ORM Models for the booking database schema"""
from app.models.provider import Provider
from app.models.availability_window import AvailabilityWindow
from app.models.consumer_profile import ConsumerProfile
from app.models.booking import Booking
from app.models.subscription import Subscription

__all__ = [
    "Provider",
    "AvailabilityWindow",
    "ConsumerProfile",
    "Booking",
    "Subscription",
]
