"""Reminder scheduling.

Turns an opportunity's deadline and notification preferences into pending
NotificationJob rows. Rescheduling never edits existing jobs: stale pending
reminders are dismissed and a fresh set is created.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..clock import as_utc, utcnow
from ..opportunities.models import Opportunity, OpportunityStatus
from ..opportunities.schemas import Channel
from ..opportunities.service import get_preferences
from .models import (
    JOB_DISMISSED,
    JOB_PENDING,
    KIND_DEADLINE_REMINDER,
    KIND_STATUS_CHANGE,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    NotificationJob,
)

logger = logging.getLogger(__name__)

# Channels that produce a job; email is accepted in preferences but never scheduled
DELIVERABLE_CHANNELS = (Channel.PUSH, Channel.IN_APP)

STATUS_MESSAGES = {
    OpportunityStatus.ADMIT_CARD_RELEASED: "Admit card has been released! Download it now.",
    OpportunityStatus.RESULT_RELEASED: "Results have been announced! Check your results.",
}


def priority_for(days_before: int) -> int:
    if days_before <= 1:
        return PRIORITY_HIGH
    if days_before <= 3:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def relevance_for(days_before: int) -> float:
    return 100.0 / (days_before + 1)


def reminder_title(title: str, days_before: int) -> str:
    if days_before == 0:
        return f"{title} - due today!"
    unit = "day" if days_before == 1 else "days"
    return f"{title} - {days_before} {unit} to go!"


def reminder_body(deadline: datetime) -> str:
    return f"Deadline is on {deadline.day} {deadline:%B %Y}. Time to prepare!"


def _channels(opportunity: Opportunity) -> list[Channel]:
    prefs = get_preferences(opportunity)
    return [c for c in prefs.channels if c in DELIVERABLE_CHANNELS]


def dismiss_pending_jobs(db: Session, opportunity_id, kind: str | None = None) -> int:
    """Mark pending jobs for an opportunity dismissed. Returns how many changed."""
    query = db.query(NotificationJob).filter(
        NotificationJob.opportunity_id == opportunity_id,
        NotificationJob.status == JOB_PENDING,
    )
    if kind is not None:
        query = query.filter(NotificationJob.kind == kind)
    count = query.update({NotificationJob.status: JOB_DISMISSED}, synchronize_session="fetch")
    db.flush()
    return count


def schedule_reminders(db: Session, opportunity: Opportunity, now: datetime | None = None) -> list[NotificationJob]:
    """Replace the opportunity's pending deadline reminders.

    Returns the newly created jobs; an empty list is a valid outcome (no deadline,
    notifications disabled, archived, or every offset already in the past).
    """
    now = as_utc(now) or utcnow()
    dismissed = dismiss_pending_jobs(db, opportunity.id, KIND_DEADLINE_REMINDER)
    if dismissed:
        logger.debug("Dismissed %d stale reminders for %s", dismissed, opportunity.id)

    if opportunity.status == OpportunityStatus.ARCHIVED:
        return []

    deadline = as_utc(opportunity.deadline)
    if deadline is None:
        return []

    prefs = get_preferences(opportunity)
    if not prefs.enabled or not prefs.days_before:
        return []

    channels = _channels(opportunity)
    jobs = []
    for days in prefs.days_before:
        scheduled_for = deadline - timedelta(days=days)
        if scheduled_for <= now:
            continue
        for channel in channels:
            jobs.append(
                NotificationJob(
                    opportunity_id=opportunity.id,
                    user_id=opportunity.user_id,
                    kind=KIND_DEADLINE_REMINDER,
                    channel=channel.value,
                    scheduled_for=scheduled_for,
                    priority=priority_for(days),
                    relevance_score=relevance_for(days),
                    days_before=days,
                    title=reminder_title(opportunity.title, days),
                    body=reminder_body(deadline),
                    status=JOB_PENDING,
                )
            )

    db.add_all(jobs)
    db.flush()
    logger.info("Scheduled %d reminders for %s", len(jobs), opportunity.id)
    return jobs


def enqueue_status_change(
    db: Session,
    opportunity: Opportunity,
    new_status: OpportunityStatus,
    now: datetime | None = None,
) -> list[NotificationJob]:
    """Queue an immediate high-priority notice for significant status changes."""
    message = STATUS_MESSAGES.get(new_status)
    if message is None:
        return []
    prefs = get_preferences(opportunity)
    if not prefs.enabled:
        return []

    now = as_utc(now) or utcnow()
    jobs = [
        NotificationJob(
            opportunity_id=opportunity.id,
            user_id=opportunity.user_id,
            kind=KIND_STATUS_CHANGE,
            channel=channel.value,
            scheduled_for=now,
            priority=PRIORITY_HIGH,
            relevance_score=100.0,
            title=f"{opportunity.title} - Status Update",
            body=message,
            status=JOB_PENDING,
        )
        for channel in _channels(opportunity)
    ]
    db.add_all(jobs)
    db.flush()
    return jobs
