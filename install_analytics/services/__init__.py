"""Service layer."""

from install_analytics.services.analytics import AnalyticsService, InstallAnalytics

__all__ = ["AnalyticsService", "InstallAnalytics"]
