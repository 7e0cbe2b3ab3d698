"""API v1 router: all JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .auth.routes import router as auth_router
from .discovery.routes import router as discovery_router
from .lifecycle.routes import router as lifecycle_router
from .notifications.routes import router as notifications_router
from .opportunities.routes import router as opportunities_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(auth_router)
api_v1_router.include_router(opportunities_router)
api_v1_router.include_router(lifecycle_router)
api_v1_router.include_router(notifications_router)
api_v1_router.include_router(discovery_router)
