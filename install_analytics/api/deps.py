"""API dependencies.

Dependency injection factories for the analytics engine and the scheduler.
"""

from typing import Annotated

from fastapi import Depends, Request

from install_analytics.db.session import get_analytics_db_context
from install_analytics.ingestion.scheduler import IngestionScheduler
from install_analytics.services.analytics import AnalyticsService, InstallAnalytics

# ===== Services =====


def get_analytics_service() -> InstallAnalytics:
    """Create the analytics service on read-only sessions."""
    return AnalyticsService(get_analytics_db_context)


AnalyticsServiceDep = Annotated[InstallAnalytics, Depends(get_analytics_service)]


# ===== Ingestion =====


def get_scheduler(request: Request) -> IngestionScheduler | None:
    """Return the scheduler started by the app lifespan, if any."""
    return getattr(request.app.state, "scheduler", None)


SchedulerDep = Annotated[IngestionScheduler | None, Depends(get_scheduler)]
