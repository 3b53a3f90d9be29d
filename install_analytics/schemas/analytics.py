"""Analytics query result schemas."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class AppSummary(BaseModel):
    """Install totals for one app with its per-city breakdown."""

    total_installs: int
    city_distribution: dict[str, int] = Field(
        default_factory=dict,
        description="City -> installs, ordered by installs descending",
    )


class InstallsPerPeriod(BaseModel):
    """Installs of one app on one calendar date."""

    period: dt.date
    count: int


class DeviceInstalls(BaseModel):
    """Installs per device model."""

    device_model: str | None
    count: int


class CityInstalls(BaseModel):
    """Installs per city."""

    city: str | None
    installs: int


class IdfvDistribution(BaseModel):
    """Limit-ad-tracking breakdown of one app's installs."""

    total_installs: int
    lat_enabled_count: int
    lat_disabled_count: int
    percentage_lat_enabled: int


class InstallMetadata(BaseModel):
    """Stored install record as exposed by the metadata query."""

    model_config = ConfigDict(from_attributes=True)

    idfv: str
    app_name: str
    city: str | None
    device_model: str | None
    install_time: dt.time
    date: dt.date
    is_lat: bool
