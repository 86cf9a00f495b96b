"""Provider model - Mentors and interviewers who publish availability"""
from sqlalchemy import Column, String, Integer, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.sql import func

from app.database import Base
from app.models.enums import ProviderStatus

# Native text[] on PostgreSQL, JSON list elsewhere (SQLite test database)
TagList = ARRAY(String(100)).with_variant(JSON(), "sqlite")


class Provider(Base):
    """Provider with qualification tags, offered session kinds and experience"""

    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=ProviderStatus.PENDING.value)
    roles_supported = Column(TagList, nullable=False, default=list)
    difficulty_levels = Column(TagList, nullable=False, default=list)
    interview_types = Column(TagList, nullable=False, default=list)
    session_kinds_offered = Column(TagList, nullable=False, default=list)
    years_of_experience = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_providers_status", "status"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status == ProviderStatus.APPROVED.value

    def offers(self, kind) -> bool:
        value = getattr(kind, "value", kind)
        return value in (self.session_kinds_offered or [])

    def __repr__(self):
        return f"<Provider(id={self.id}, name={self.display_name}, status={self.status})>"
