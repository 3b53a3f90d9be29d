"""install-analytics management CLI.

Groups:
    server  run the analytics API together with the feed scheduler
    db      apply installs schema migrations and inspect stored installs
    cmd     one-off jobs registered in install_analytics/commands/
"""
# ruff: noqa: E402 - Import at bottom to avoid circular imports

import asyncio
import os

import click
from tabulate import tabulate

ALEMBIC_INI = "alembic.ini"


@click.group()
@click.version_option(version="0.1.0", prog_name="install-analytics")
def cli():
    """Install feed ingestion and analytics."""
    pass


# === Server Commands ===
@cli.group("server")
def server_cli():
    """Serve the /analytics API and run scheduled feed ingestion."""
    pass


@server_cli.command("run")
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
@click.option("--no-ingest", is_flag=True, help="Serve analytics only; do not start the feed scheduler")
def server_run(host: str, port: int, reload: bool, no_ingest: bool):
    """Start the API; the feed is ingested every INGEST_INTERVAL_SECONDS unless --no-ingest."""
    import uvicorn

    if no_ingest:
        # Read by the settings of the reloader's worker process as well.
        os.environ["INGEST_ENABLED"] = "false"
        from install_analytics.core.config import settings

        settings.INGEST_ENABLED = False

    uvicorn.run(
        "install_analytics.main:app",
        host=host,
        port=port,
        reload=reload,
    )


@server_cli.command("routes")
def server_routes():
    """List the HTTP endpoints of the analytics API."""
    from install_analytics.main import app

    rows = sorted(
        [method, route.path, getattr(route, "name", "-")]
        for route in app.routes
        if hasattr(route, "methods")
        for method in route.methods - {"HEAD", "OPTIONS"}
    )
    click.echo(tabulate(rows, headers=["Method", "Path", "Name"]))


# === Database Commands ===
def _alembic(action: str, *args) -> None:
    from alembic import command
    from alembic.config import Config

    getattr(command, action)(Config(ALEMBIC_INI), *args)


@cli.group("db")
def db_cli():
    """Installs table migrations and contents."""
    pass


@db_cli.command("upgrade")
@click.option("--revision", default="head", help="Revision to upgrade to (default: head)")
def db_upgrade(revision: str):
    """Create or migrate the installs table."""
    _alembic("upgrade", revision)
    click.secho(f"Installs schema at: {revision}", fg="green")


@db_cli.command("downgrade")
@click.option("--revision", default="-1", help="Revision to downgrade to")
def db_downgrade(revision: str):
    """Roll the installs schema back."""
    _alembic("downgrade", revision)
    click.secho(f"Installs schema at: {revision}", fg="green")


@db_cli.command("current")
def db_current():
    """Show the applied schema revision."""
    _alembic("current")


@db_cli.command("history")
def db_history():
    """Show the schema revision history."""
    _alembic("history")


@db_cli.command("stats")
def db_stats():
    """Show stored installs per app with their LAT share."""
    from install_analytics.db.session import close_db, get_analytics_db_context
    from install_analytics.services.analytics import AnalyticsService

    async def collect() -> list[list]:
        service = AnalyticsService(get_analytics_db_context)
        try:
            rows = []
            for app_name in await service.list_apps():
                lat = await service.idfv_distribution(app_name)
                rows.append([app_name, lat.total_installs, f"{lat.percentage_lat_enabled}%"])
            return rows
        finally:
            await close_db()

    rows = asyncio.run(collect())
    if not rows:
        click.secho("No installs stored yet.", fg="yellow")
        return
    click.echo(tabulate(rows, headers=["App", "Installs", "LAT enabled"]))


# === Custom Commands ===
@cli.group("cmd")
def cmd_cli():
    """One-off jobs: ingest the feed now, seed sample installs."""
    pass


from install_analytics.commands import register_commands

register_commands(cmd_cli)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
