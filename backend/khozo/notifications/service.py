"""Notification center, delivery tokens, stats and retention cleanup."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ..clock import as_utc, utcnow
from ..config import settings
from .models import (
    JOB_FAILED,
    JOB_SENT,
    DeliveryToken,
    NotificationDailyStats,
    NotificationHistory,
    NotificationJob,
)

logger = logging.getLogger(__name__)


# ── Retention ─────────────────────────────────────────────────────────


def cleanup_old_jobs(db: Session, now: datetime | None = None) -> dict:
    """Delete delivered jobs past the sent retention and failed jobs past the failed retention."""
    now = as_utc(now) or utcnow()
    sent_cutoff = now - timedelta(days=settings.sent_retention_days)
    failed_cutoff = now - timedelta(days=settings.failed_retention_days)

    deleted_sent = (
        db.query(NotificationJob)
        .filter(NotificationJob.status == JOB_SENT, NotificationJob.delivered_at < sent_cutoff)
        .delete(synchronize_session=False)
    )
    deleted_failed = (
        db.query(NotificationJob)
        .filter(NotificationJob.status == JOB_FAILED, NotificationJob.created_at < failed_cutoff)
        .delete(synchronize_session=False)
    )
    db.flush()
    logger.info("Cleanup removed %d sent and %d failed jobs", deleted_sent, deleted_failed)
    return {"deleted_sent": deleted_sent, "deleted_failed": deleted_failed}


# ── Notification center ───────────────────────────────────────────────


def list_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> list[NotificationHistory]:
    query = db.query(NotificationHistory).filter(NotificationHistory.user_id == user_id)
    if unread_only:
        query = query.filter(NotificationHistory.read_at.is_(None))
    return query.order_by(NotificationHistory.sent_at.desc()).limit(limit).all()


def unread_count(db: Session, user_id: UUID) -> int:
    return (
        db.query(NotificationHistory)
        .filter(NotificationHistory.user_id == user_id, NotificationHistory.read_at.is_(None))
        .count()
    )


def mark_read(db: Session, user_id: UUID, notification_id: str, now: datetime | None = None) -> bool:
    try:
        uid = UUID(notification_id)
    except ValueError:
        return False
    entry = (
        db.query(NotificationHistory)
        .filter(NotificationHistory.id == uid, NotificationHistory.user_id == user_id)
        .first()
    )
    if not entry:
        return False
    if entry.read_at is None:
        entry.read_at = as_utc(now) or utcnow()
        db.flush()
    return True


def history_to_dict(entry: NotificationHistory) -> dict:
    return {
        "id": str(entry.id),
        "opportunityId": str(entry.opportunity_id) if entry.opportunity_id else None,
        "title": entry.title,
        "body": entry.body or "",
        "sentAt": as_utc(entry.sent_at).isoformat() if entry.sent_at else None,
        "read": entry.read_at is not None,
    }


# ── Delivery tokens ───────────────────────────────────────────────────


def register_token(db: Session, user_id: UUID, token: str, platform: str) -> DeliveryToken:
    """Upsert a delivery token for the user."""
    existing = (
        db.query(DeliveryToken)
        .filter(DeliveryToken.user_id == user_id, DeliveryToken.token == token)
        .first()
    )
    if existing:
        existing.platform = platform
        existing.updated_at = utcnow()
        db.flush()
        return existing

    row = DeliveryToken(user_id=user_id, token=token, platform=platform)
    db.add(row)
    db.flush()
    return row


def remove_token(db: Session, user_id: UUID, token: str) -> bool:
    deleted = (
        db.query(DeliveryToken)
        .filter(DeliveryToken.user_id == user_id, DeliveryToken.token == token)
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted > 0


# ── Stats ─────────────────────────────────────────────────────────────


def get_daily_stats(db: Session, days: int = 7, now: datetime | None = None) -> list[dict]:
    now = as_utc(now) or utcnow()
    since = (now - timedelta(days=days - 1)).date()
    rows = (
        db.query(NotificationDailyStats)
        .filter(NotificationDailyStats.date >= since)
        .order_by(NotificationDailyStats.date.desc())
        .all()
    )
    return [
        {"date": r.date.isoformat(), "totalSent": r.total_sent, "totalFailed": r.total_failed}
        for r in rows
    ]
