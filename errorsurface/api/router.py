"""Master API router -- includes all sub-routers."""

from fastapi import APIRouter

from .routes.events import router as events_router
from .routes.store import router as store_router
from .routes.system import router as system_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(events_router)
api_router.include_router(store_router)
api_router.include_router(system_router)
