"""Health check routes."""

from typing import Any

from fastapi import APIRouter

from install_analytics.api.deps import SchedulerDep

router = APIRouter()


@router.get("/health")
async def health(scheduler: SchedulerDep) -> dict[str, Any]:
    """Liveness probe with the ingestion scheduler state."""
    return {
        "status": "healthy",
        "ingestion": scheduler.snapshot() if scheduler else None,
    }
