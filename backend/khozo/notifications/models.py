"""Notification job queue, delivery targets and notification-center models."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base

# Job kinds
KIND_DEADLINE_REMINDER = "deadline_reminder"
KIND_STATUS_CHANGE = "status_change"

# Job states
JOB_PENDING = "pending"
JOB_SENT = "sent"
JOB_FAILED = "failed"
JOB_DISMISSED = "dismissed"

# Priority tiers, higher drains first
PRIORITY_HIGH = 3
PRIORITY_MEDIUM = 2
PRIORITY_LOW = 1


class NotificationJob(Base):
    """A single scheduled delivery on one channel.

    Only status, error and delivered_at change after creation.
    """

    __tablename__ = "notification_jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    opportunity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = Column(String(30), nullable=False)
    channel = Column(String(20), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    priority = Column(Integer, default=PRIORITY_MEDIUM, nullable=False)
    relevance_score = Column(Float, default=0.0, nullable=False)
    days_before = Column(Integer, nullable=True)
    title = Column(String(500), nullable=False)
    body = Column(Text, default="")
    status = Column(String(20), default=JOB_PENDING, nullable=False)
    error = Column(Text, nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    opportunity = relationship("Opportunity", back_populates="notification_jobs")

    __table_args__ = (
        Index("idx_jobs_due", "status", "scheduled_for"),
        Index("idx_jobs_opportunity", "opportunity_id", "status"),
    )


class DeliveryToken(Base):
    """A push registration token for one of the user's devices."""

    __tablename__ = "delivery_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token = Column(String(500), nullable=False)
    platform = Column(String(20), default="web", nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    user = relationship("User", back_populates="delivery_tokens")

    __table_args__ = (UniqueConstraint("user_id", "token", name="uq_delivery_tokens_user_token"),)


class NotificationHistory(Base):
    """Notification-center entry written on every successful delivery."""

    __tablename__ = "notification_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_id = Column(UUID(as_uuid=True), ForeignKey("notification_jobs.id", ondelete="SET NULL"), nullable=True)
    opportunity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=True,
    )
    title = Column(String(500), nullable=False)
    body = Column(Text, default="")
    sent_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_history_user_sent", "user_id", "sent_at"),)


class NotificationDailyStats(Base):
    __tablename__ = "notification_daily_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, unique=True, nullable=False)
    total_sent = Column(Integer, default=0, nullable=False)
    total_failed = Column(Integer, default=0, nullable=False)
