"""Audit log service."""

from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import client_ip
from .models import AuditLog

MAX_DETAIL_LENGTH = 2000


def audit(
    db: Session,
    request: Request,
    action: str,
    detail: str = "",
    user_id: UUID | None = None,
    opportunity_id: UUID | None = None,
) -> None:
    """Add an audit entry to the session; the caller's commit persists it.

    Falls back to the user resolved by get_current_user for this request.
    """
    if user_id is None:
        user_id = getattr(request.state, "user_id", None)

    db.add(
        AuditLog(
            user_id=user_id,
            opportunity_id=opportunity_id,
            action=action,
            detail=detail[:MAX_DETAIL_LENGTH],
            ip_address=client_ip(request),
        )
    )
