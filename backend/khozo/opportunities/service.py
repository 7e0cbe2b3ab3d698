"""Opportunity service: tracking, lookup, preferences, serialization."""

import logging
from datetime import UTC, datetime, time
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..clock import as_utc
from ..errors import NotFound, Unauthorized
from .models import Opportunity, OpportunityStatus
from .schemas import NotificationPreferences, OpportunityCreateRequest

logger = logging.getLogger(__name__)


def _to_uuid(value) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


def _derive_deadline(data: OpportunityCreateRequest) -> datetime | None:
    if data.deadline is not None:
        return as_utc(data.deadline)
    end = data.important_dates.get("application_end")
    if end is None:
        return None
    return datetime.combine(end.date, time.min, tzinfo=UTC)


def create_opportunity(db: Session, user_id: UUID, data: OpportunityCreateRequest) -> Opportunity:
    """Start tracking an opportunity for a user, always in the discovered state."""
    opportunity = Opportunity(
        user_id=user_id,
        title=data.title.strip(),
        description=data.description,
        url=data.url,
        category=data.category,
        program_type=data.program_type.strip().lower(),
        tags=data.tags,
        eligibility=data.eligibility.model_dump(exclude_none=True),
        important_dates={k: v.model_dump(mode="json") for k, v in data.important_dates.items()},
        deadline=_derive_deadline(data),
        status=OpportunityStatus.DISCOVERED,
        notification_preferences=data.notification_preferences.model_dump(mode="json"),
    )
    db.add(opportunity)
    db.flush()
    logger.info("User %s started tracking %s (%s)", user_id, opportunity.id, opportunity.title)
    return opportunity


def get_opportunity(db: Session, opportunity_id) -> Opportunity | None:
    uid = _to_uuid(opportunity_id)
    if uid is None:
        return None
    return db.query(Opportunity).filter(Opportunity.id == uid).first()


def get_owned_opportunity(db: Session, opportunity_id, user_id: UUID) -> Opportunity:
    """Fetch an opportunity the acting user owns.

    Raises NotFound when it does not exist and Unauthorized when someone else owns it.
    """
    opportunity = get_opportunity(db, opportunity_id)
    if opportunity is None:
        raise NotFound("Opportunity", str(opportunity_id))
    if opportunity.user_id != user_id:
        raise Unauthorized()
    return opportunity


def list_opportunities(
    db: Session,
    user_id: UUID,
    status: OpportunityStatus | None = None,
    limit: int = 100,
) -> list[Opportunity]:
    query = db.query(Opportunity).filter(Opportunity.user_id == user_id)
    if status is not None:
        query = query.filter(Opportunity.status == status)
    else:
        query = query.filter(Opportunity.status != OpportunityStatus.ARCHIVED)
    return query.order_by(Opportunity.created_at.desc()).limit(limit).all()


def get_preferences(opportunity: Opportunity) -> NotificationPreferences:
    """Read the stored preferences, filling in defaults for missing fields."""
    try:
        return NotificationPreferences.model_validate(opportunity.notification_preferences or {})
    except ValidationError:
        logger.warning("Stored preferences for %s are invalid, using defaults", opportunity.id)
        return NotificationPreferences()


def save_preferences(db: Session, opportunity: Opportunity, prefs: NotificationPreferences) -> None:
    opportunity.notification_preferences = prefs.model_dump(mode="json")
    db.flush()


def opportunity_to_dict(opportunity: Opportunity) -> dict:
    deadline = as_utc(opportunity.deadline)
    return {
        "id": str(opportunity.id),
        "title": opportunity.title,
        "description": opportunity.description or "",
        "url": opportunity.url or "",
        "category": opportunity.category.value,
        "type": opportunity.program_type or "",
        "tags": opportunity.tags or [],
        "eligibility": opportunity.eligibility or {},
        "importantDates": opportunity.important_dates or {},
        "deadline": deadline.isoformat() if deadline else None,
        "status": opportunity.status.value,
        "appliedAt": as_utc(opportunity.applied_at).isoformat() if opportunity.applied_at else None,
        "viewCount": opportunity.view_count or 0,
        "saveCount": opportunity.save_count or 0,
        "shareCount": opportunity.share_count or 0,
        "notificationPreferences": get_preferences(opportunity).model_dump(mode="json"),
    }
