"""Status transition route."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..database import get_db
from ..dependencies import get_current_user
from .service import transition

router = APIRouter(tags=["lifecycle"])


class TransitionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    opportunity_id: str = Field(..., alias="opportunityId")
    requested_status: str = Field(..., alias="requestedStatus")
    reason: str | None = Field(None, max_length=1000)


@router.post("/transition")
def change_status(
    request: Request,
    body: TransitionRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = transition(db, body.opportunity_id, body.requested_status, user.id, body.reason)
    audit(
        db,
        request,
        "status_change",
        f"{result['previousStatus']}->{result['newStatus']}",
        opportunity_id=UUID(body.opportunity_id),
    )
    db.commit()
    return JSONResponse(result)
