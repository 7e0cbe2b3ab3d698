"""Notification routes: scheduling, cron dispatch/cleanup, notification center."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..config import settings
from ..database import get_db
from ..dependencies import get_current_user, get_push_gateway, require_cron_secret
from ..integrations.push import PushGateway
from ..opportunities.service import get_owned_opportunity
from .dispatcher import dispatch_batch
from .scheduler import schedule_reminders
from .schemas import DispatchRequest, ScheduleRequest, TokenRemoveRequest, TokenRequest
from .service import (
    cleanup_old_jobs,
    get_daily_stats,
    history_to_dict,
    list_notifications,
    mark_read,
    register_token,
    remove_token,
    unread_count,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/schedule")
def schedule(
    request: Request,
    body: ScheduleRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = get_owned_opportunity(db, body.opportunity_id, user.id)
    jobs = schedule_reminders(db, opportunity)
    audit(db, request, "schedule_notifications", f"scheduled={len(jobs)}", opportunity_id=opportunity.id)
    db.commit()
    return JSONResponse({"ok": True, "scheduled": len(jobs)})


@router.post("/dispatch", dependencies=[Depends(require_cron_secret)])
def dispatch(
    body: DispatchRequest | None = None,
    db: Session = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
):
    limit = (body.limit if body else None) or settings.dispatch_batch_limit
    return JSONResponse(dispatch_batch(db, gateway, limit=limit))


@router.post("/cleanup", dependencies=[Depends(require_cron_secret)])
def cleanup(db: Session = Depends(get_db)):
    result = cleanup_old_jobs(db)
    db.commit()
    return JSONResponse({"ok": True, **result})


@router.get("")
def notification_center(
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    entries = list_notifications(db, user.id, unread_only=unread, limit=limit)
    return JSONResponse(
        {
            "notifications": [history_to_dict(e) for e in entries],
            "unread": unread_count(db, user.id),
        }
    )


@router.post("/{notification_id}/read")
def read_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not mark_read(db, user.id, notification_id):
        return JSONResponse({"error": "Notification not found"}, status_code=404)
    db.commit()
    return JSONResponse({"ok": True})


@router.post("/tokens")
def add_token(
    request: Request,
    body: TokenRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    register_token(db, user.id, body.token, body.platform)
    audit(db, request, "token_register", f"platform={body.platform}")
    db.commit()
    return JSONResponse({"ok": True})


@router.delete("/tokens")
def delete_token(
    request: Request,
    body: TokenRemoveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not remove_token(db, user.id, body.token):
        return JSONResponse({"error": "Token not found"}, status_code=404)
    audit(db, request, "token_remove")
    db.commit()
    return JSONResponse({"ok": True})


@router.get("/stats")
def stats(
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse({"days": get_daily_stats(db, days)})
