"""Top-level API router."""

from fastapi import APIRouter

from moniteye.api.routes.health import router as health_router
from moniteye.api.routes.revenue import router as revenue_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(revenue_router)
