"""Enumerations shared by the booking models and services"""
import enum


class SessionKind(str, enum.Enum):
    """Kind of session; each kind is also a separate quota bucket"""

    INTERVIEW = "interview"
    GUIDANCE = "guidance"


class PlanTier(str, enum.Enum):
    BASE = "base"
    ELEVATED = "elevated"


class ProviderStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DifficultyLevel(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class InterviewType(str, enum.Enum):
    TECHNICAL = "technical"
    HR = "hr"
    BEHAVIORAL = "behavioral"
    SYSTEM_DESIGN = "system_design"


class SubscriptionStatus(str, enum.Enum):
    PAID = "paid"
