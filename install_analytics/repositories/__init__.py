"""Repository layer for database operations."""

from install_analytics.repositories.analytics import AnalyticsRepository
from install_analytics.repositories.installs import InstallRepository

__all__ = [
    "AnalyticsRepository",
    "InstallRepository",
]
