"""Engagement tracking: views, saves, shares and recently-viewed history.

Counters on Opportunity only ever grow. Clearing viewing history removes the
user's ViewHistory rows and nothing else.
"""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..opportunities.models import Opportunity
from .models import EVENT_SAVE, EVENT_SHARE, EVENT_VIEW, EngagementEvent, ViewHistory

logger = logging.getLogger(__name__)


def _distinct_viewers(db: Session, opportunity_id) -> int:
    return (
        db.query(func.count(func.distinct(EngagementEvent.user_id)))
        .filter(EngagementEvent.opportunity_id == opportunity_id, EngagementEvent.kind == EVENT_VIEW)
        .scalar()
        or 0
    )


def track_view(db: Session, opportunity: Opportunity, user_id: UUID, source: str = "direct") -> int:
    """Record a view. Returns the updated unique-viewer count."""
    db.add(EngagementEvent(opportunity_id=opportunity.id, user_id=user_id, kind=EVENT_VIEW))
    db.add(ViewHistory(user_id=user_id, opportunity_id=opportunity.id, source=source[:50]))
    db.flush()
    opportunity.view_count = max(opportunity.view_count or 0, _distinct_viewers(db, opportunity.id))
    db.flush()
    return opportunity.view_count


def track_save(db: Session, opportunity: Opportunity, user_id: UUID) -> int:
    db.add(EngagementEvent(opportunity_id=opportunity.id, user_id=user_id, kind=EVENT_SAVE))
    opportunity.save_count = (opportunity.save_count or 0) + 1
    db.flush()
    return opportunity.save_count


def track_share(db: Session, opportunity: Opportunity, user_id: UUID) -> int:
    db.add(EngagementEvent(opportunity_id=opportunity.id, user_id=user_id, kind=EVENT_SHARE))
    opportunity.share_count = (opportunity.share_count or 0) + 1
    db.flush()
    return opportunity.share_count


def recently_viewed(db: Session, user_id: UUID, limit: int = 20) -> list[tuple[ViewHistory, Opportunity]]:
    """Most recent view per opportunity, newest first."""
    rows = (
        db.query(ViewHistory, Opportunity)
        .join(Opportunity, Opportunity.id == ViewHistory.opportunity_id)
        .filter(ViewHistory.user_id == user_id)
        .order_by(ViewHistory.viewed_at.desc())
        .all()
    )
    seen = set()
    result = []
    for view, opportunity in rows:
        if opportunity.id in seen:
            continue
        seen.add(opportunity.id)
        result.append((view, opportunity))
        if len(result) >= limit:
            break
    return result


def clear_view_history(db: Session, user_id: UUID) -> int:
    deleted = db.query(ViewHistory).filter(ViewHistory.user_id == user_id).delete(synchronize_session=False)
    db.flush()
    logger.info("Cleared %d view history rows for user %s", deleted, user_id)
    return deleted
