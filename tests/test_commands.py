"""Tests for management commands."""

import os
import random
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from cli.commands import cli
from install_analytics.commands.seed import generate_installs
from install_analytics.ingestion import IngestionRun, RunStatus
from install_analytics.schemas.analytics import IdfvDistribution


def test_generate_installs_is_deterministic_per_seed():
    first = generate_installs(3, 10, random.Random(7))
    second = generate_installs(3, 10, random.Random(7))

    assert first == second
    assert len({record.date for record in first}) == 3


def test_seed_dry_run_writes_nothing():
    result = CliRunner().invoke(cli, ["cmd", "seed", "--days", "2", "--per-day", "4", "--dry-run"])

    assert result.exit_code == 0
    assert "Dry run complete" in result.output


def test_ingest_reports_success():
    run = IngestionRun(status=RunStatus.SUCCEEDED, rows_parsed=3, rows_written=2, batches_flushed=1)

    with patch("install_analytics.commands.ingest.run_ingestion", AsyncMock(return_value=run)):
        result = CliRunner().invoke(cli, ["cmd", "ingest"])

    assert result.exit_code == 0
    assert "Stored 2 new installs." in result.output


def test_ingest_failure_exits_non_zero():
    run = IngestionRun(status=RunStatus.FAILED, error="Install feed answered with status 503", error_code="network_error")

    with patch("install_analytics.commands.ingest.run_ingestion", AsyncMock(return_value=run)):
        result = CliRunner().invoke(cli, ["cmd", "ingest", "--batch-size", "50"])

    assert result.exit_code == 1


def test_routes_lists_analytics_endpoints():
    result = CliRunner().invoke(cli, ["server", "routes"])

    assert result.exit_code == 0
    assert "/analytics/installs-by-app" in result.output
    assert "/health" in result.output


def test_db_stats_tabulates_installs_per_app():
    service = AsyncMock()
    service.list_apps.return_value = ["Chess", "Paint"]
    service.idfv_distribution.side_effect = [
        IdfvDistribution(total_installs=4, lat_enabled_count=1, lat_disabled_count=3, percentage_lat_enabled=25),
        IdfvDistribution(total_installs=2, lat_enabled_count=1, lat_disabled_count=1, percentage_lat_enabled=50),
    ]

    with (
        patch("install_analytics.services.analytics.AnalyticsService", return_value=service),
        patch("install_analytics.db.session.close_db", AsyncMock()) as close_db,
    ):
        result = CliRunner().invoke(cli, ["db", "stats"])

    assert result.exit_code == 0
    assert "Chess" in result.output
    assert "25%" in result.output
    close_db.assert_awaited_once()


def test_server_run_without_ingestion_disables_the_scheduler(monkeypatch):
    from install_analytics.core.config import settings

    monkeypatch.setattr(settings, "INGEST_ENABLED", True)
    monkeypatch.setenv("INGEST_ENABLED", "true")

    with patch("uvicorn.run") as uvicorn_run:
        result = CliRunner().invoke(cli, ["server", "run", "--no-ingest", "--port", "9000"])

    assert result.exit_code == 0
    assert settings.INGEST_ENABLED is False
    assert os.environ["INGEST_ENABLED"] == "false"
    assert uvicorn_run.call_args.kwargs["port"] == 9000


def test_db_stats_on_an_empty_store():
    service = AsyncMock()
    service.list_apps.return_value = []

    with (
        patch("install_analytics.services.analytics.AnalyticsService", return_value=service),
        patch("install_analytics.db.session.close_db", AsyncMock()),
    ):
        result = CliRunner().invoke(cli, ["db", "stats"])

    assert result.exit_code == 0
    assert "No installs stored yet." in result.output
