"""API router aggregation."""

from fastapi import APIRouter

from install_analytics.api.routes import analytics, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
