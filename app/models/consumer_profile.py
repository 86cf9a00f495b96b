"""ConsumerProfile model - People booking sessions, with their embedded quota"""
from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from sqlalchemy.sql import func

from app.config import BASE_INTERVIEW_LIMIT, BASE_GUIDANCE_LIMIT
from app.database import Base
from app.models.enums import PlanTier


class ConsumerProfile(Base):
    """Consumer profile carrying plan tier, per-bucket usage, limits and expiry"""

    __tablename__ = "consumer_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    plan_type = Column(String(20), nullable=False, default=PlanTier.BASE.value)
    interviews_used = Column(Integer, nullable=False, default=0)
    interviews_limit = Column(Integer, nullable=False, default=BASE_INTERVIEW_LIMIT)
    guidance_used = Column(Integer, nullable=False, default=0)
    guidance_limit = Column(Integer, nullable=False, default=BASE_GUIDANCE_LIMIT)
    plan_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("interviews_used >= 0 AND guidance_used >= 0", name="usage_non_negative"),
    )

    def __repr__(self):
        return f"<ConsumerProfile(id={self.id}, plan={self.plan_type})>"
