"""Analytics repository: typed aggregation queries over stored installs.

Every grouping query orders by count descending, then by the grouping key
ascending with NULL keys last, so equal counts come back in a stable order.
"""

from datetime import date
from typing import Any

import logfire
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from install_analytics.db.models.install import Install


class AnalyticsRepository:
    """Read-only aggregation queries over the installs table.

    Follows Pattern 1: session passed to methods (not held in __init__).
    All counts are returned as Python ints.
    """

    async def distinct_app_names(self, db: AsyncSession) -> list[str]:
        with logfire.span("AnalyticsRepository.distinct_app_names"):
            result = await db.execute(
                select(Install.app_name).distinct().order_by(Install.app_name.asc())
            )
            return list(result.scalars().all())

    async def installs_by_city(self, db: AsyncSession, app_name: str) -> list[tuple[str | None, int]]:
        """Per-city install counts for one app."""
        installs = func.count(Install.id).label("installs")
        with logfire.span("AnalyticsRepository.installs_by_city", app_name=app_name):
            result = await db.execute(
                select(Install.city, installs)
                .where(Install.app_name == app_name)
                .group_by(Install.city)
                .order_by(installs.desc(), Install.city.asc().nulls_last())
            )
            return [(city, int(count)) for city, count in result.all()]

    async def installs_by_date(
        self,
        db: AsyncSession,
        app_name: str,
        date_from: date,
        date_to: date,
    ) -> list[tuple[date, int]]:
        """Install counts per date for one app, only for dates that have installs."""
        installs = func.count(Install.id).label("installs")
        with logfire.span("AnalyticsRepository.installs_by_date", app_name=app_name):
            result = await db.execute(
                select(Install.date, installs)
                .where(
                    Install.app_name == app_name,
                    Install.date >= date_from,
                    Install.date <= date_to,
                )
                .group_by(Install.date)
                .order_by(Install.date.asc())
            )
            return [(period, int(count)) for period, count in result.all()]

    async def installs_by_device(
        self,
        db: AsyncSession,
        date_from: date,
        date_to: date,
    ) -> list[tuple[str | None, int]]:
        installs = func.count(Install.id).label("installs")
        with logfire.span("AnalyticsRepository.installs_by_device"):
            result = await db.execute(
                select(Install.device_model, installs)
                .where(Install.date >= date_from, Install.date <= date_to)
                .group_by(Install.device_model)
                .order_by(installs.desc(), Install.device_model.asc().nulls_last())
            )
            return [(device_model, int(count)) for device_model, count in result.all()]

    async def lat_counts(self, db: AsyncSession, app_name: str) -> tuple[int, int]:
        """Return (lat_enabled, lat_disabled) counts for one app."""
        enabled = func.coalesce(func.sum(case((Install.is_lat, 1), else_=0)), 0)
        disabled = func.coalesce(func.sum(case((Install.is_lat, 0), else_=1)), 0)
        with logfire.span("AnalyticsRepository.lat_counts", app_name=app_name):
            result = await db.execute(
                select(enabled, disabled).where(Install.app_name == app_name)
            )
            lat_enabled, lat_disabled = result.one()
            return int(lat_enabled), int(lat_disabled)

    async def installs_in_range(
        self,
        db: AsyncSession,
        date_from: date,
        date_to: date,
    ) -> list[dict[str, Any]]:
        """Full install records with date in range, oldest first."""
        with logfire.span("AnalyticsRepository.installs_in_range"):
            result = await db.execute(
                select(
                    Install.idfv,
                    Install.app_name,
                    Install.city,
                    Install.device_model,
                    Install.install_time,
                    Install.date,
                    Install.is_lat,
                )
                .where(Install.date.between(date_from, date_to))
                .order_by(Install.date.asc(), Install.install_time.asc(), Install.id.asc())
            )
            rows = [dict(row) for row in result.mappings().all()]
            logfire.info("Metadata fetched", row_count=len(rows))
            return rows
