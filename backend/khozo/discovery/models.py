"""Engagement tracking models."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID

from ..database import Base

EVENT_VIEW = "view"
EVENT_SAVE = "save"
EVENT_APPLY = "apply"
EVENT_SHARE = "share"

# Events counted towards trending engagement
TRENDING_EVENTS = (EVENT_VIEW, EVENT_SAVE, EVENT_APPLY)


class EngagementEvent(Base):
    """Append-only interaction log used for windowed trending counts."""

    __tablename__ = "engagement_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    opportunity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    kind = Column(String(20), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_events_window", "created_at", "kind"),)


class ViewHistory(Base):
    """User-facing "recently viewed" entries."""

    __tablename__ = "view_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    opportunity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
    )
    source = Column(String(50), default="direct")
    viewed_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_view_history_user", "user_id", "viewed_at"),)
