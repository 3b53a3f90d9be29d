"""Install analytics routes.

Each route validates its query parameters and delegates to the analytics
engine; the engine never sees missing or malformed input.
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from install_analytics.api.deps import AnalyticsServiceDep
from install_analytics.core.exceptions import ValidationError
from install_analytics.schemas.analytics import (
    AppSummary,
    CityInstalls,
    DeviceInstalls,
    IdfvDistribution,
    InstallMetadata,
    InstallsPerPeriod,
)

router = APIRouter()

AppNameParam = Annotated[str | None, Query(alias="app_name")]
FromParam = Annotated[str | None, Query(alias="from", description="YYYY-MM-DD, inclusive")]
ToParam = Annotated[str | None, Query(alias="to", description="YYYY-MM-DD, inclusive")]


def require_app_name(app_name: str | None) -> str:
    if not app_name or not app_name.strip():
        raise ValidationError("The app_name parameter is required")
    return app_name


def require_date_range(date_from: str | None, date_to: str | None) -> tuple[date, date]:
    if not date_from or not date_to:
        raise ValidationError("Missing required query parameters", details={"required": ["from", "to"]})
    try:
        return date.fromisoformat(date_from), date.fromisoformat(date_to)
    except ValueError as e:
        raise ValidationError(
            "Dates must use the YYYY-MM-DD format",
            details={"from": date_from, "to": date_to},
        ) from e


@router.get("/apps", response_model=list[str])
async def list_apps(service: AnalyticsServiceDep) -> list[str]:
    """List every app with at least one stored install."""
    return await service.list_apps()


@router.get("/installs-by-app", response_model=AppSummary)
async def installs_by_app(service: AnalyticsServiceDep, app_name: AppNameParam = None) -> AppSummary:
    """Total installs of an app and their distribution by city."""
    return await service.app_summary(require_app_name(app_name))


@router.get("/installs-by-time", response_model=list[InstallsPerPeriod])
async def installs_by_time(
    service: AnalyticsServiceDep,
    app_name: AppNameParam = None,
    date_from: FromParam = None,
    date_to: ToParam = None,
) -> list[InstallsPerPeriod]:
    """Daily installs of an app; days without installs are omitted."""
    name = require_app_name(app_name)
    start, end = require_date_range(date_from, date_to)
    return await service.installs_over_time(name, start, end)


@router.get("/installs-by-device", response_model=list[DeviceInstalls])
async def installs_by_device(
    service: AnalyticsServiceDep,
    date_from: FromParam = None,
    date_to: ToParam = None,
) -> list[DeviceInstalls]:
    """Installs per device model across all apps."""
    start, end = require_date_range(date_from, date_to)
    return await service.installs_by_device(start, end)


@router.get("/geo-analysis", response_model=list[CityInstalls])
async def geo_analysis(service: AnalyticsServiceDep, app_name: AppNameParam = None) -> list[CityInstalls]:
    """Installs of an app per city."""
    return await service.geo_analysis(require_app_name(app_name))


@router.get("/idfv-distribution", response_model=IdfvDistribution)
async def idfv_distribution(service: AnalyticsServiceDep, app_name: AppNameParam = None) -> IdfvDistribution:
    """Limit-ad-tracking breakdown of an app's installs."""
    return await service.idfv_distribution(require_app_name(app_name))


@router.get("/installs-metadata", response_model=list[InstallMetadata])
async def installs_metadata(
    service: AnalyticsServiceDep,
    date_from: FromParam = None,
    date_to: ToParam = None,
) -> list[InstallMetadata]:
    """Stored install records within a date range."""
    start, end = require_date_range(date_from, date_to)
    return await service.metadata_by_date_range(start, end)
