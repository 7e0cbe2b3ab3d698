"""Trending opportunities over a sliding time window."""

import logging
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..clock import as_utc, utcnow
from ..config import settings
from ..integrations.cache import CacheService
from ..opportunities.models import Opportunity, OpportunityCategory
from .models import EVENT_APPLY, EVENT_VIEW, TRENDING_EVENTS, EngagementEvent

logger = logging.getLogger(__name__)

WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def growth_rate(current: int, previous: int) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def _events(
    db: Session,
    start: datetime,
    end: datetime,
    category: OpportunityCategory | None,
    program_type: str | None,
    include_end: bool,
):
    query = (
        db.query(EngagementEvent.opportunity_id, EngagementEvent.kind)
        .join(Opportunity, Opportunity.id == EngagementEvent.opportunity_id)
        .filter(
            EngagementEvent.kind.in_(TRENDING_EVENTS),
            EngagementEvent.created_at >= start,
        )
    )
    if include_end:
        query = query.filter(EngagementEvent.created_at <= end)
    else:
        query = query.filter(EngagementEvent.created_at < end)
    if category is not None:
        query = query.filter(Opportunity.category == category)
    if program_type:
        query = query.filter(Opportunity.program_type == program_type)
    return query.order_by(EngagementEvent.created_at.asc(), EngagementEvent.id.asc()).all()


def rank_trending(
    db: Session,
    time_window: str = "day",
    limit: int = 10,
    category: OpportunityCategory | None = None,
    now: datetime | None = None,
    program_type: str | None = None,
) -> list[dict]:
    if time_window not in WINDOWS:
        raise ValueError(f"Unknown time window: {time_window}")
    now = as_utc(now) or utcnow()
    span = WINDOWS[time_window]
    program_type = (program_type or "").strip().lower() or None
    start = now - span

    engagement: Counter = Counter()
    views: Counter = Counter()
    applications: Counter = Counter()
    for opportunity_id, kind in _events(db, start, now, category, program_type, include_end=True):
        engagement[opportunity_id] += 1
        if kind == EVENT_VIEW:
            views[opportunity_id] += 1
        elif kind == EVENT_APPLY:
            applications[opportunity_id] += 1

    if not engagement:
        return []

    prior_events = _events(db, start - span, start, category, program_type, include_end=False)
    previous: Counter = Counter(opportunity_id for opportunity_id, _ in prior_events)

    # Counter preserves first-seen order, and sorted() is stable
    ranked = sorted(engagement.items(), key=lambda item: item[1], reverse=True)[:limit]
    ids = [opportunity_id for opportunity_id, _ in ranked]
    by_id = {o.id: o for o in db.query(Opportunity).filter(Opportunity.id.in_(ids)).all()}

    rows = []
    for opportunity_id, count in ranked:
        opportunity = by_id.get(opportunity_id)
        if opportunity is None:
            continue
        row = {
            "id": str(opportunity.id),
            "title": opportunity.title,
            "category": opportunity.category.value,
            "type": opportunity.program_type or "",
            "trendingScore": count,
            "viewCount": views[opportunity_id],
            "applicationCount": applications[opportunity_id],
            "growthRate": growth_rate(count, previous[opportunity_id]),
        }
        deadline = as_utc(opportunity.deadline)
        if deadline:
            row["deadline"] = deadline.isoformat()
        if opportunity.tags:
            row["tags"] = list(opportunity.tags)
        rows.append(row)
    return rows


def get_trending(
    db: Session,
    cache: CacheService,
    time_window: str = "day",
    limit: int = 10,
    category: OpportunityCategory | None = None,
    program_type: str | None = None,
) -> list[dict]:
    program_type = (program_type or "").strip().lower() or None
    key = f"trending:{time_window}:{limit}:{category.value if category else 'all'}:{program_type or 'all'}"
    cached = cache.get_json(key)
    if cached is not None:
        return cached

    rows = rank_trending(db, time_window, limit, category, program_type=program_type)
    cache.set_json(key, rows, settings.trending_cache_ttl)
    logger.debug("Trending %s: %d items", time_window, len(rows))
    return rows
