"""Opportunity tracking routes."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..clock import as_utc
from ..database import get_db
from ..dependencies import get_current_user
from ..lifecycle.service import get_history, parse_status
from ..notifications.scheduler import schedule_reminders
from .schemas import NotificationPreferences, OpportunityCreateRequest
from .service import (
    create_opportunity,
    get_owned_opportunity,
    list_opportunities,
    opportunity_to_dict,
    save_preferences,
)

router = APIRouter(prefix="/opportunities", tags=["opportunities"])


@router.post("")
def track_opportunity(
    request: Request,
    body: OpportunityCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = create_opportunity(db, user.id, body)
    audit(db, request, "opportunity_create", f"title={opportunity.title}", opportunity_id=opportunity.id)
    db.commit()
    return JSONResponse(opportunity_to_dict(opportunity), status_code=201)


@router.get("")
def my_opportunities(
    status: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    status_enum = parse_status(status) if status else None
    items = list_opportunities(db, user.id, status_enum, limit)
    return JSONResponse({"opportunities": [opportunity_to_dict(o) for o in items]})


@router.get("/{opportunity_id}")
def opportunity_detail(
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = get_owned_opportunity(db, opportunity_id, user.id)
    return JSONResponse(opportunity_to_dict(opportunity))


@router.put("/{opportunity_id}/preferences")
def update_preferences(
    request: Request,
    opportunity_id: str,
    body: NotificationPreferences,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = get_owned_opportunity(db, opportunity_id, user.id)
    save_preferences(db, opportunity, body)
    jobs = schedule_reminders(db, opportunity)
    audit(db, request, "preferences_update", f"scheduled={len(jobs)}", opportunity_id=opportunity.id)
    db.commit()
    return JSONResponse(
        {
            "ok": True,
            "notificationPreferences": body.model_dump(mode="json"),
            "scheduled": len(jobs),
        }
    )


@router.get("/{opportunity_id}/history")
def status_history(
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = get_owned_opportunity(db, opportunity_id, user.id)
    return JSONResponse(
        {
            "history": [
                {
                    "previousStatus": h.previous_status,
                    "newStatus": h.new_status,
                    "changedBy": h.changed_by,
                    "reason": h.change_reason or "",
                    "createdAt": as_utc(h.created_at).isoformat() if h.created_at else None,
                }
                for h in get_history(db, opportunity)
            ]
        }
    )
