"""Opportunity lifecycle: validated status transitions with an audit trail.

A transition is applied in steps. The status change is committed first; the
history row, status-change notifications and job dismissal follow, each
committed on its own. A failure in a later step is logged and leaves the
earlier, already committed steps in place.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clock import as_utc, utcnow
from ..config import settings
from ..discovery.models import EVENT_APPLY, EngagementEvent
from ..errors import InvalidStatus, InvalidTransition, UpstreamFailure
from ..notifications.scheduler import dismiss_pending_jobs, enqueue_status_change
from ..opportunities.models import Opportunity, OpportunityStatus
from ..opportunities.service import get_owned_opportunity
from .models import StatusHistoryEntry

logger = logging.getLogger(__name__)

S = OpportunityStatus

STATUS_TRANSITIONS: dict[OpportunityStatus, frozenset[OpportunityStatus]] = {
    S.DISCOVERED: frozenset({S.APPLIED, S.ARCHIVED}),
    S.APPLIED: frozenset({S.CORRECTION_WINDOW, S.ADMIT_CARD_RELEASED, S.EXAM_COMPLETED, S.ARCHIVED}),
    S.CORRECTION_WINDOW: frozenset({S.ADMIT_CARD_RELEASED, S.EXAM_COMPLETED, S.ARCHIVED}),
    S.ADMIT_CARD_RELEASED: frozenset({S.EXAM_COMPLETED, S.ARCHIVED}),
    S.EXAM_COMPLETED: frozenset({S.RESULT_PENDING, S.RESULT_RELEASED, S.ARCHIVED}),
    S.RESULT_PENDING: frozenset({S.RESULT_RELEASED, S.ARCHIVED}),
    S.RESULT_RELEASED: frozenset({S.ARCHIVED}),
    S.ARCHIVED: frozenset(),
}


def parse_status(value: str) -> OpportunityStatus:
    try:
        return OpportunityStatus(value)
    except ValueError:
        raise InvalidStatus(value, [s.value for s in OpportunityStatus]) from None


def is_allowed(current: OpportunityStatus, requested: OpportunityStatus) -> bool:
    return requested == current or requested in STATUS_TRANSITIONS[current]


def _apply_status(db: Session, opportunity: Opportunity, new_status: OpportunityStatus, now: datetime) -> None:
    opportunity.status = new_status
    if new_status == S.APPLIED and opportunity.applied_at is None:
        opportunity.applied_at = now
        db.add(EngagementEvent(opportunity_id=opportunity.id, user_id=opportunity.user_id, kind=EVENT_APPLY))
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist status for %s", opportunity.id)
        raise UpstreamFailure(f"Failed to update status: {exc.__class__.__name__}") from exc


def _run_step(db: Session, label: str, opportunity_id, step) -> None:
    """Run and commit a follow-up step; failures are logged and rolled back."""
    try:
        step()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Transition step '%s' failed for %s", label, opportunity_id, exc_info=True)


def transition(
    db: Session,
    opportunity_id,
    requested_status: str,
    actor_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Move an opportunity to a new lifecycle state.

    Disallowed transitions are logged and applied anyway unless
    STRICT_TRANSITIONS is enabled, in which case InvalidTransition is raised
    before anything changes.
    """
    new_status = parse_status(requested_status)
    opportunity = get_owned_opportunity(db, opportunity_id, actor_id)
    previous = opportunity.status
    now = as_utc(now) or utcnow()

    if not is_allowed(previous, new_status):
        if settings.strict_transitions:
            raise InvalidTransition(previous.value, new_status.value)
        logger.warning(
            "Transition %s -> %s is not in the allowed table for %s, applying anyway",
            previous.value,
            new_status.value,
            opportunity.id,
        )

    _apply_status(db, opportunity, new_status, now)
    opp_id = opportunity.id

    _run_step(
        db,
        "history",
        opp_id,
        lambda: db.add(
            StatusHistoryEntry(
                opportunity_id=opp_id,
                previous_status=previous.value,
                new_status=new_status.value,
                changed_by="user",
                change_reason=reason or f"User changed status from {previous.value} to {new_status.value}",
                actor_id=actor_id,
            )
        ),
    )

    if new_status in (S.ADMIT_CARD_RELEASED, S.RESULT_RELEASED):
        _run_step(db, "notify", opp_id, lambda: enqueue_status_change(db, opportunity, new_status, now))

    if new_status == S.ARCHIVED:
        _run_step(db, "dismiss", opp_id, lambda: dismiss_pending_jobs(db, opp_id))

    logger.info("Opportunity %s moved from %s to %s", opp_id, previous.value, new_status.value)
    return {"previousStatus": previous.value, "newStatus": new_status.value}


def get_history(db: Session, opportunity: Opportunity) -> list[StatusHistoryEntry]:
    return (
        db.query(StatusHistoryEntry)
        .filter(StatusHistoryEntry.opportunity_id == opportunity.id)
        .order_by(StatusHistoryEntry.created_at.asc())
        .all()
    )
