"""AvailabilityWindow model - Bookable blocks of provider time"""
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.sql import func

from app.database import Base


class AvailabilityWindow(Base):
    """
    A contiguous block of provider time, either fully free or fully booked.

    Booked windows are kept as the historical record of what a booking consumed;
    unused leftovers live on as new free windows.
    """

    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(
        Integer,
        ForeignKey("providers.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="window_start_before_end"),
        Index("idx_windows_provider_free_start", "provider_id", "is_booked", "start_time"),
    )

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def __repr__(self):
        return (
            f"<AvailabilityWindow(id={self.id}, provider_id={self.provider_id}, "
            f"{self.start_time}->{self.end_time}, booked={self.is_booked})>"
        )
