"""Notification dispatch.

Drains due pending jobs in priority order. Each job's outcome is committed on
its own so one bad job never takes the rest of the batch down with it.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..clock import as_utc, utcnow
from ..errors import NoDeliveryTarget
from ..integrations.push import PushGateway
from ..opportunities.models import Opportunity, OpportunityStatus
from ..opportunities.schemas import Channel
from .models import (
    JOB_FAILED,
    JOB_PENDING,
    JOB_SENT,
    PRIORITY_HIGH,
    DeliveryToken,
    NotificationDailyStats,
    NotificationHistory,
    NotificationJob,
)

logger = logging.getLogger(__name__)


def due_jobs(db: Session, limit: int, now: datetime) -> list[NotificationJob]:
    """Pending jobs that are due, skipping those of archived opportunities."""
    return (
        db.query(NotificationJob)
        .join(Opportunity, Opportunity.id == NotificationJob.opportunity_id)
        .filter(
            NotificationJob.status == JOB_PENDING,
            NotificationJob.scheduled_for <= now,
            Opportunity.status != OpportunityStatus.ARCHIVED,
        )
        .order_by(
            NotificationJob.priority.desc(),
            NotificationJob.relevance_score.desc(),
            NotificationJob.created_at.asc(),
        )
        .limit(limit)
        .all()
    )


def _push(db: Session, job: NotificationJob, gateway: PushGateway) -> tuple[bool, str]:
    tokens = db.query(DeliveryToken).filter(DeliveryToken.user_id == job.user_id).all()
    if not tokens:
        raise NoDeliveryTarget()

    data = {
        "job_id": str(job.id),
        "opportunity_id": str(job.opportunity_id),
        "kind": job.kind,
        "priority": "high" if job.priority >= PRIORITY_HIGH else "normal",
    }
    delivered = False
    last_error = ""
    for token in tokens:
        ok, error = gateway.send(token.token, job.title, job.body or "", data)
        if ok:
            delivered = True
        else:
            last_error = error
    return delivered, last_error


def deliver(db: Session, job: NotificationJob, gateway: PushGateway, now: datetime) -> bool:
    """Deliver one job and record the outcome on it. Returns True when sent."""
    if job.channel == Channel.IN_APP.value:
        ok, error = True, ""
    else:
        try:
            ok, error = _push(db, job, gateway)
        except NoDeliveryTarget as exc:
            ok, error = False, str(exc)

    if ok:
        job.status = JOB_SENT
        job.error = None
        job.delivered_at = now
        db.add(
            NotificationHistory(
                user_id=job.user_id,
                job_id=job.id,
                opportunity_id=job.opportunity_id,
                title=job.title,
                body=job.body or "",
                sent_at=now,
            )
        )
    else:
        job.status = JOB_FAILED
        job.error = error
    return ok


def _record_stats(db: Session, now: datetime, sent: int, failed: int) -> None:
    if not sent and not failed:
        return
    today = now.date()
    row = db.query(NotificationDailyStats).filter(NotificationDailyStats.date == today).first()
    if row is None:
        row = NotificationDailyStats(date=today, total_sent=0, total_failed=0)
        db.add(row)
    row.total_sent += sent
    row.total_failed += failed


def dispatch_batch(
    db: Session,
    gateway: PushGateway,
    limit: int = 100,
    now: datetime | None = None,
) -> dict:
    """Send up to ``limit`` due jobs. Returns ``{"sent": n, "failed": m}``."""
    now = as_utc(now) or utcnow()
    jobs = due_jobs(db, limit, now)
    sent = failed = 0

    for job in jobs:
        job_id = job.id
        try:
            if deliver(db, job, gateway, now):
                sent += 1
            else:
                failed += 1
                logger.info("Job %s failed: %s", job_id, job.error)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Unexpected error dispatching job %s", job_id)
            failed += 1
            job = db.get(NotificationJob, job_id)
            if job is not None:
                job.status = JOB_FAILED
                job.error = str(exc)[:1000] or exc.__class__.__name__
                db.commit()

    _record_stats(db, now, sent, failed)
    db.commit()
    if jobs:
        logger.info("Dispatched %d jobs: %d sent, %d failed", len(jobs), sent, failed)
    return {"sent": sent, "failed": failed}
