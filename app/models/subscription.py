"""Subscription model - Paid plan periods applied to a consumer"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.database import Base
from app.models.enums import PlanTier, SubscriptionStatus


class Subscription(Base):
    """One paid upgrade; `reference` is the payment collaborator's order id"""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    consumer_id = Column(
        Integer,
        ForeignKey("consumer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reference = Column(String(100), unique=True, nullable=False)
    plan_type = Column(String(20), nullable=False, default=PlanTier.ELEVATED.value)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.PAID.value)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Subscription(id={self.id}, consumer_id={self.consumer_id}, until={self.valid_until})>"
