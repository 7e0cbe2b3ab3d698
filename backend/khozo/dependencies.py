"""Shared FastAPI dependencies."""

import hmac

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .auth.models import User
from .auth.service import decode_access_token, get_user_by_id
from .config import settings
from .database import get_db
from .errors import Unauthorized
from .integrations.cache import CacheService
from .integrations.push import PushGateway


class AuthRequired(Exception):
    """Raised when the bearer credential is missing or invalid. Handled in main.py."""

    pass


def get_cache(request: Request) -> CacheService:
    """Get the cache service from app state."""
    return request.app.state.cache


def get_push_gateway(request: Request) -> PushGateway:
    return request.app.state.push_gateway


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer ") :].strip() or None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the user behind the bearer token."""
    token = _bearer_token(request)
    if not token:
        raise AuthRequired()
    user_id = decode_access_token(token)
    if user_id is None:
        raise AuthRequired()
    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise AuthRequired()
    request.state.user_id = user.id
    return user


def require_cron_secret(request: Request) -> None:
    """Guard for endpoints driven by the external scheduler."""
    provided = request.headers.get("X-Cron-Secret", "")
    if not settings.cron_secret or not hmac.compare_digest(provided, settings.cron_secret):
        raise Unauthorized("Invalid cron secret")
