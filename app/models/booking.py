"""Booking model - A scheduled session between a consumer and a provider"""
from datetime import timedelta

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index
from sqlalchemy.sql import func

from app.database import Base
from app.models.enums import BookingStatus


class Booking(Base):
    """Booking record created together with the window consumption and quota increment"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    consumer_id = Column(
        Integer,
        ForeignKey("consumer_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    provider_id = Column(
        Integer,
        ForeignKey("providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    window_id = Column(
        Integer,
        ForeignKey("availability_windows.id", ondelete="SET NULL"),
        nullable=True,
    )
    session_kind = Column(String(20), nullable=False)
    topic = Column(Text, nullable=True)
    role = Column(String(100), nullable=True)
    difficulty = Column(String(20), nullable=True)
    interview_type = Column(String(30), nullable=True)
    scheduled_start = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.SCHEDULED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_bookings_provider_status_start", "provider_id", "status", "scheduled_start"),
        Index("idx_bookings_consumer", "consumer_id"),
    )

    @property
    def scheduled_end(self):
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, kind={self.session_kind}, provider_id={self.provider_id}, "
            f"start={self.scheduled_start})>"
        )
