"""Analytics service: the fixed catalogue of install aggregation queries.

Every operation is read-only and stateless; it opens its own session, so
calls may run concurrently with each other and with ingestion. Inputs are
assumed validated by the caller.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from install_analytics.core.exceptions import AggregationError
from install_analytics.repositories.analytics import AnalyticsRepository
from install_analytics.schemas.analytics import (
    AppSummary,
    CityInstalls,
    DeviceInstalls,
    IdfvDistribution,
    InstallMetadata,
    InstallsPerPeriod,
)

logger = logging.getLogger(__name__)

# Key used for installs without a city in the city -> installs mapping.
UNKNOWN_CITY = "unknown"

# asyncpg reports an unreachable store as a plain OSError.
QUERY_ERRORS = (SQLAlchemyError, OSError, ValueError)

SessionContextFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class InstallAnalytics(Protocol):
    """Interface the query API depends on."""

    async def list_apps(self) -> list[str]: ...

    async def app_summary(self, app_name: str) -> AppSummary: ...

    async def installs_over_time(
        self, app_name: str, date_from: date, date_to: date
    ) -> list[InstallsPerPeriod]: ...

    async def installs_by_device(self, date_from: date, date_to: date) -> list[DeviceInstalls]: ...

    async def geo_analysis(self, app_name: str) -> list[CityInstalls]: ...

    async def idfv_distribution(self, app_name: str) -> IdfvDistribution: ...

    async def metadata_by_date_range(self, date_from: date, date_to: date) -> list[InstallMetadata]: ...


def percentage(part: int, total: int) -> int:
    """Whole-number percentage of part in total, rounded half up; 0 when total is 0."""
    if total == 0:
        return 0
    ratio = Decimal(part) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class AnalyticsService:
    """Install analytics over the record store.

    Usage:
        service = AnalyticsService(get_analytics_db_context)
        summary = await service.app_summary("Paint for iOS")
    """

    def __init__(
        self,
        session_context: SessionContextFactory,
        repository: AnalyticsRepository | None = None,
    ) -> None:
        self._session_context = session_context
        self._repository = repository or AnalyticsRepository()

    async def list_apps(self) -> list[str]:
        try:
            async with self._session_context() as db:
                return await self._repository.distinct_app_names(db)
        except QUERY_ERRORS as e:
            raise self._failure("list_apps", e) from e

    async def app_summary(self, app_name: str) -> AppSummary:
        try:
            async with self._session_context() as db:
                cities = await self._repository.installs_by_city(db, app_name)
        except QUERY_ERRORS as e:
            raise self._failure("app_summary", e) from e

        # Total and breakdown come from one statement so they always agree.
        merged: dict[str, int] = {}
        for city, count in cities:
            key = UNKNOWN_CITY if city is None else city
            merged[key] = merged.get(key, 0) + count
        # A real city named like the NULL key merges into it; re-rank afterwards.
        ranked = sorted(merged.items(), key=lambda item: (-item[1], item[0] == UNKNOWN_CITY, item[0]))
        return AppSummary(total_installs=sum(merged.values()), city_distribution=dict(ranked))

    async def installs_over_time(
        self,
        app_name: str,
        date_from: date,
        date_to: date,
    ) -> list[InstallsPerPeriod]:
        """Installs per date in [date_from, date_to]; dates without installs are omitted."""
        try:
            async with self._session_context() as db:
                rows = await self._repository.installs_by_date(db, app_name, date_from, date_to)
        except QUERY_ERRORS as e:
            raise self._failure("installs_over_time", e) from e
        return [InstallsPerPeriod(period=period, count=count) for period, count in rows]

    async def installs_by_device(self, date_from: date, date_to: date) -> list[DeviceInstalls]:
        try:
            async with self._session_context() as db:
                rows = await self._repository.installs_by_device(db, date_from, date_to)
        except QUERY_ERRORS as e:
            raise self._failure("installs_by_device", e) from e
        return [DeviceInstalls(device_model=device, count=count) for device, count in rows]

    async def geo_analysis(self, app_name: str) -> list[CityInstalls]:
        try:
            async with self._session_context() as db:
                rows = await self._repository.installs_by_city(db, app_name)
        except QUERY_ERRORS as e:
            raise self._failure("geo_analysis", e) from e
        return [CityInstalls(city=city, installs=count) for city, count in rows]

    async def idfv_distribution(self, app_name: str) -> IdfvDistribution:
        try:
            async with self._session_context() as db:
                enabled, disabled = await self._repository.lat_counts(db, app_name)
        except QUERY_ERRORS as e:
            raise self._failure("idfv_distribution", e) from e

        total = enabled + disabled
        return IdfvDistribution(
            total_installs=total,
            lat_enabled_count=enabled,
            lat_disabled_count=disabled,
            percentage_lat_enabled=percentage(enabled, total),
        )

    async def metadata_by_date_range(self, date_from: date, date_to: date) -> list[InstallMetadata]:
        try:
            async with self._session_context() as db:
                rows = await self._repository.installs_in_range(db, date_from, date_to)
            return [InstallMetadata.model_validate(row) for row in rows]
        except QUERY_ERRORS as e:
            raise self._failure("metadata_by_date_range", e) from e

    @staticmethod
    def _failure(operation: str, error: Exception) -> AggregationError:
        logger.error(f"Analytics query {operation} failed: {error}", exc_info=error)
        return AggregationError(
            f"Failed to execute {operation}",
            details={"operation": operation},
        )
