"""Tests for the analytics service."""

from contextlib import asynccontextmanager
from datetime import date, time
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from install_analytics.core.exceptions import AggregationError
from install_analytics.repositories.analytics import AnalyticsRepository
from install_analytics.schemas.analytics import CityInstalls, InstallsPerPeriod
from install_analytics.services.analytics import AnalyticsService, percentage


@pytest.fixture
def service(session_factory) -> AnalyticsService:
    return AnalyticsService(lambda: session_factory())


@pytest.mark.parametrize(
    ("part", "total", "expected"),
    [(1, 2, 50), (1, 8, 13), (2, 3, 67), (1, 3, 33), (0, 5, 0), (5, 5, 100), (0, 0, 0)],
)
def test_percentage_rounds_half_up(part, total, expected):
    assert percentage(part, total) == expected


class TestAnalyticsService:
    """Aggregations over a seeded SQLite store."""

    @pytest.mark.anyio
    async def test_list_apps(self, service, store, make_record):
        """Test distinct app names in ascending order."""
        await store([make_record(app_name="Paint"), make_record(app_name="Chess"), make_record(app_name="Paint")])

        assert await service.list_apps() == ["Chess", "Paint"]

    @pytest.mark.anyio
    async def test_list_apps_empty_store(self, service):
        assert await service.list_apps() == []

    @pytest.mark.anyio
    async def test_app_summary_groups_cities(self, service, store, make_record):
        """Test totals and per-city counts, with missing city keyed as unknown."""
        await store(
            [
                make_record(city="Kyiv"),
                make_record(city="Kyiv"),
                make_record(city="Lviv"),
                make_record(city=None),
                make_record(app_name="Other", city="Kyiv"),
            ]
        )

        summary = await service.app_summary("X")

        assert summary.total_installs == 4
        assert summary.city_distribution == {"Kyiv": 2, "Lviv": 1, "unknown": 1}

    @pytest.mark.anyio
    async def test_app_summary_unknown_app(self, service):
        summary = await service.app_summary("missing")

        assert summary.total_installs == 0
        assert summary.city_distribution == {}

    @pytest.mark.anyio
    async def test_installs_over_time_omits_empty_dates(self, service, store, make_record):
        """Test per-date counts in range, ascending, without zero rows."""
        await store(
            [
                make_record(date=date(2024, 1, 1)),
                make_record(date=date(2024, 1, 1)),
                make_record(date=date(2024, 1, 3)),
                make_record(date=date(2024, 1, 3)),
                make_record(date=date(2024, 2, 1)),
                make_record(app_name="Other", date=date(2024, 1, 2)),
            ]
        )

        result = await service.installs_over_time("X", date(2024, 1, 1), date(2024, 1, 31))

        assert result == [
            InstallsPerPeriod(period=date(2024, 1, 1), count=2),
            InstallsPerPeriod(period=date(2024, 1, 3), count=2),
        ]

    @pytest.mark.anyio
    async def test_installs_by_device_spans_apps_with_inclusive_range(self, service, store, make_record):
        """Test devices are counted across all apps, range ends included."""
        await store(
            [
                make_record(device_model="iPhone 15", date=date(2024, 1, 1)),
                make_record(app_name="Other", device_model="iPhone 15", date=date(2024, 1, 5)),
                make_record(device_model="iPad", date=date(2024, 1, 5)),
                make_record(device_model="iPad", date=date(2024, 1, 6)),
            ]
        )

        result = await service.installs_by_device(date(2024, 1, 1), date(2024, 1, 5))

        assert [(row.device_model, row.count) for row in result] == [("iPhone 15", 2), ("iPad", 1)]

    @pytest.mark.anyio
    async def test_geo_analysis_orders_by_installs(self, service, store, make_record):
        """Test cities come back by installs descending, ties by name."""
        await store(
            [make_record(city="C") for _ in range(3)]
            + [make_record(city="A") for _ in range(5)]
            + [make_record(city="B") for _ in range(3)]
        )

        result = await service.geo_analysis("X")

        assert result == [
            CityInstalls(city="A", installs=5),
            CityInstalls(city="B", installs=3),
            CityInstalls(city="C", installs=3),
        ]

    @pytest.mark.anyio
    async def test_idfv_distribution(self, service, store, make_record):
        """Test LAT split and whole-number percentage."""
        await store([make_record(is_lat=True), make_record(is_lat=False)])

        result = await service.idfv_distribution("X")

        assert result.total_installs == 2
        assert result.lat_enabled_count == 1
        assert result.lat_disabled_count == 1
        assert result.percentage_lat_enabled == 50

    @pytest.mark.anyio
    async def test_idfv_distribution_for_app_without_installs(self, service):
        result = await service.idfv_distribution("missing")

        assert result.total_installs == 0
        assert result.percentage_lat_enabled == 0

    @pytest.mark.anyio
    async def test_metadata_by_date_range(self, service, store, make_record):
        """Test full records for the range, oldest first."""
        await store(
            [
                make_record(idfv="late", date=date(2024, 1, 2), install_time=time(1, 0)),
                make_record(idfv="early", date=date(2024, 1, 1), install_time=time(23, 0)),
                make_record(idfv="outside", date=date(2024, 1, 3)),
            ]
        )

        result = await service.metadata_by_date_range(date(2024, 1, 1), date(2024, 1, 2))

        assert [row.idfv for row in result] == ["early", "late"]
        assert result[0].install_time == time(23, 0)
        assert result[0].city == "Kyiv"

    @pytest.mark.anyio
    async def test_store_failure_raises_aggregation_error(self, session_factory):
        """Test storage faults surface as AggregationError."""
        repository = AnalyticsRepository()
        repository.installs_by_city = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("gone")))
        service = AnalyticsService(lambda: session_factory(), repository=repository)

        with pytest.raises(AggregationError) as exc_info:
            await service.app_summary("X")

        assert exc_info.value.details == {"operation": "app_summary"}

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.list_apps(),
            lambda s: s.app_summary("X"),
            lambda s: s.installs_over_time("X", date(2024, 1, 1), date(2024, 1, 2)),
            lambda s: s.installs_by_device(date(2024, 1, 1), date(2024, 1, 2)),
            lambda s: s.geo_analysis("X"),
            lambda s: s.idfv_distribution("X"),
            lambda s: s.metadata_by_date_range(date(2024, 1, 1), date(2024, 1, 2)),
        ],
    )
    async def test_unreachable_store_raises_aggregation_error(self, operation):
        """Test connection failures from the driver surface as AggregationError."""

        @asynccontextmanager
        async def refused_session():
            raise ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 1)")
            yield

        service = AnalyticsService(refused_session)

        with pytest.raises(AggregationError):
            await operation(service)

    @pytest.mark.anyio
    async def test_app_summary_city_named_like_missing_city_stays_ranked(self, service, store, make_record):
        """Test merged buckets are re-ranked by installs descending."""
        await store(
            [make_record(city="A") for _ in range(5)]
            + [make_record(city="unknown") for _ in range(4)]
            + [make_record(city="B") for _ in range(3)]
            + [make_record(city=None) for _ in range(3)]
        )

        summary = await service.app_summary("X")

        assert list(summary.city_distribution.items()) == [("unknown", 7), ("A", 5), ("B", 3)]
        assert summary.total_installs == 15

    @pytest.mark.anyio
    async def test_app_summary_total_matches_breakdown(self, session_factory):
        """Test the total is derived from the same rows as the breakdown."""
        repository = AnalyticsRepository()
        repository.installs_by_city = AsyncMock(return_value=[("Kyiv", 4), (None, 2), ("Lviv", 2)])
        service = AnalyticsService(lambda: session_factory(), repository=repository)

        summary = await service.app_summary("X")

        assert summary.total_installs == sum(summary.city_distribution.values()) == 8
        assert list(summary.city_distribution) == ["Kyiv", "Lviv", "unknown"]
        repository.installs_by_city.assert_awaited_once()
