"""Discovery routes: related items, trending, engagement tracking."""

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth.models import User
from ..clock import as_utc
from ..config import settings
from ..database import get_db
from ..dependencies import get_cache, get_current_user
from ..errors import NotFound
from ..integrations.cache import CacheService
from ..opportunities.models import OpportunityCategory
from ..opportunities.service import get_opportunity
from ..rate_limit import limiter
from .engagement import clear_view_history, recently_viewed, track_save, track_share, track_view
from .related import get_related_items
from .trending import get_trending

router = APIRouter(tags=["discovery"])


class ViewRequest(BaseModel):
    source: str = Field("direct", max_length=50)


def _parse_categories(raw: str | None) -> list[OpportunityCategory] | None:
    if not raw:
        return None
    values = [v.strip().lower() for v in raw.split(",") if v.strip()]
    return [OpportunityCategory(v) for v in values] or None


def _load(db: Session, opportunity_id: str):
    opportunity = get_opportunity(db, opportunity_id)
    if opportunity is None:
        raise NotFound("Opportunity", opportunity_id)
    return opportunity


@router.get("/related/{item_id}")
def related(
    item_id: str,
    limit: int = Query(5, ge=1, le=50),
    min_similarity: float = Query(0.3, ge=0.0, le=1.0, alias="minSimilarity"),
    include_types: str | None = Query(None, alias="includeTypes"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    cache: CacheService = Depends(get_cache),
):
    try:
        categories = _parse_categories(include_types)
    except ValueError:
        valid = ", ".join(c.value for c in OpportunityCategory)
        return JSONResponse({"error": f"includeTypes must be a subset of: {valid}"}, status_code=400)
    return JSONResponse(get_related_items(db, cache, item_id, limit, min_similarity, categories))


@router.get("/trending")
def trending(
    time_window: Literal["day", "week", "month"] = Query("day", alias="timeWindow"),
    limit: int = Query(10, ge=1, le=50),
    category: OpportunityCategory | None = Query(None),
    program_type: str | None = Query(None, alias="type", max_length=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    cache: CacheService = Depends(get_cache),
):
    return JSONResponse(get_trending(db, cache, time_window, limit, category, program_type))


@router.post("/opportunities/{opportunity_id}/view")
@limiter.limit(settings.rate_limit_tracking)
def view(
    request: Request,
    opportunity_id: str,
    body: ViewRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = _load(db, opportunity_id)
    count = track_view(db, opportunity, user.id, body.source if body else "direct")
    db.commit()
    return JSONResponse({"ok": True, "viewCount": count})


@router.post("/opportunities/{opportunity_id}/save")
@limiter.limit(settings.rate_limit_tracking)
def save(
    request: Request,
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = _load(db, opportunity_id)
    count = track_save(db, opportunity, user.id)
    db.commit()
    return JSONResponse({"ok": True, "saveCount": count})


@router.post("/opportunities/{opportunity_id}/share")
@limiter.limit(settings.rate_limit_tracking)
def share(
    request: Request,
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    opportunity = _load(db, opportunity_id)
    count = track_share(db, opportunity, user.id)
    db.commit()
    return JSONResponse({"ok": True, "shareCount": count})


@router.get("/views/recent")
def recent_views(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse(
        {
            "views": [
                {
                    "id": str(o.id),
                    "title": o.title,
                    "category": o.category.value,
                    "source": v.source,
                    "viewedAt": as_utc(v.viewed_at).isoformat() if v.viewed_at else None,
                }
                for v, o in recently_viewed(db, user.id, limit)
            ]
        }
    )


@router.delete("/views")
def clear_views(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    deleted = clear_view_history(db, user.id)
    db.commit()
    return JSONResponse({"ok": True, "deleted": deleted})
