"""Authentication routes: registration and bearer token issue."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..config import settings
from ..database import get_db
from ..rate_limit import limiter
from .schemas import LoginRequest, RegisterRequest
from .service import authenticate_user, create_access_token, create_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_body(user_id) -> dict:
    return {
        "access_token": create_access_token(user_id),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
    }


@router.post("/register")
@limiter.limit(settings.rate_limit_auth)
def register(
    request: Request,
    body: RegisterRequest,
    db: Session = Depends(get_db),
):
    user = create_user(db, body.email, body.password)
    if not user:
        return JSONResponse({"error": "Email already registered"}, status_code=409)
    audit(db, request, "register", f"email={user.email}", user_id=user.id)
    db.commit()
    return JSONResponse(_token_body(user.id), status_code=201)


@router.post("/token")
@limiter.limit(settings.rate_limit_auth)
def token(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    user = authenticate_user(db, body.email, body.password)
    if not user:
        audit(db, request, "login_failed", f"email={body.email}")
        db.commit()
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)
    audit(db, request, "login", f"email={body.email}", user_id=user.id)
    db.commit()
    return JSONResponse(_token_body(user.id))
