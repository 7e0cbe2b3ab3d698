"""Opportunity model and lifecycle enums."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base


class OpportunityStatus(enum.StrEnum):
    """Application lifecycle state."""

    DISCOVERED = "discovered"
    APPLIED = "applied"
    CORRECTION_WINDOW = "correction_window"
    ADMIT_CARD_RELEASED = "admit_card_released"
    EXAM_COMPLETED = "exam_completed"
    RESULT_PENDING = "result_pending"
    RESULT_RELEASED = "result_released"
    ARCHIVED = "archived"


class OpportunityCategory(enum.StrEnum):
    EXAM = "exam"
    JOB = "job"
    SCHEME = "scheme"
    POLICY = "policy"
    STARTUP = "startup"
    LEGAL = "legal"
    OTHER = "other"


class Opportunity(Base):
    __tablename__ = "opportunities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Descriptive
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    url = Column(String(1000), default="")
    category = Column(
        SQLEnum(OpportunityCategory, values_callable=lambda e: [c.value for c in e]),
        default=OpportunityCategory.OTHER,
        nullable=False,
    )
    program_type = Column(String(50), default="")
    tags = Column(JSON, default=list)
    eligibility = Column(JSON, default=dict)  # state, min_age, max_age, education, gender

    # Temporal
    important_dates = Column(JSON, default=dict)  # {key: {"date": "YYYY-MM-DD", "confidence": ...}}
    deadline = Column(DateTime(timezone=True), nullable=True)

    # Lifecycle
    status = Column(
        SQLEnum(OpportunityStatus, values_callable=lambda e: [s.value for s in e]),
        default=OpportunityStatus.DISCOVERED,
        nullable=False,
    )
    applied_at = Column(DateTime(timezone=True), nullable=True)

    # Engagement counters (only ever incremented)
    view_count = Column(Integer, default=0, nullable=False)
    save_count = Column(Integer, default=0, nullable=False)
    share_count = Column(Integer, default=0, nullable=False)

    notification_preferences = Column(JSON, default=dict)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    user = relationship("User", back_populates="opportunities")
    status_history = relationship(
        "StatusHistoryEntry",
        back_populates="opportunity",
        cascade="all, delete-orphan",
        order_by="StatusHistoryEntry.created_at",
    )
    notification_jobs = relationship("NotificationJob", back_populates="opportunity", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_opportunities_user", "user_id"),
        Index("idx_opportunities_status", "status"),
        Index("idx_opportunities_category", "category"),
        Index("idx_opportunities_deadline", "deadline"),
    )
