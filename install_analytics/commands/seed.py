"""
Seed database with sample installs.

Populates the installs table with synthetic events for development of the
analytics queries. Uses the same insert-or-ignore path as ingestion, so
seeding twice with the same random seed adds nothing.
"""

import asyncio
import random
from datetime import date, time, timedelta
from uuid import UUID

import click

from install_analytics.commands import command, error, info, success
from install_analytics.repositories.installs import InstallRepository
from install_analytics.schemas.installs import InstallRecord

APPS = [
    "com.paint.android",
    "com.paint.ios",
    "com.countdown.android",
    "com.weatherpro.ios",
    "com.fitnesstracker",
]

CITIES = ["New York", "London", "Berlin", "Paris", "Tokyo", "Toronto", "Sydney", None]

DEVICE_MODELS = ["iPhone14,2", "iPhone15,3", "iPad13,1", "SM-G991B", "Pixel 7", None]

BATCH_SIZE = 500


def generate_installs(days: int, per_day: int, rng: random.Random) -> list[InstallRecord]:
    """Generate install events spread over the last `days` days."""
    end_date = date.today()
    records = []
    for offset in range(days):
        install_date = end_date - timedelta(days=offset)
        for _ in range(rng.randint(per_day // 2, per_day)):
            records.append(
                InstallRecord(
                    idfv=str(UUID(int=rng.getrandbits(128), version=4)).upper(),
                    app_name=rng.choice(APPS),
                    city=rng.choice(CITIES),
                    device_model=rng.choice(DEVICE_MODELS),
                    install_time=time(rng.randrange(24), rng.randrange(60), rng.randrange(60)),
                    date=install_date,
                    is_lat=rng.random() < 0.2,
                )
            )
    return records


async def seed_data(days: int, per_day: int, random_seed: int, dry_run: bool) -> int:
    """Seed the database and return the number of installs written."""
    records = generate_installs(days, per_day, random.Random(random_seed))

    if dry_run:
        info(f"Would insert up to {len(records)} installs over {days} days")
        return len(records)

    from install_analytics.db.session import close_db, get_db_context

    repository = InstallRepository()
    written = 0
    try:
        async with get_db_context() as db:
            for start in range(0, len(records), BATCH_SIZE):
                written += await repository.insert_ignore(db, records[start : start + BATCH_SIZE])
    finally:
        await close_db()
    return written


@command("seed", help="Seed database with sample installs")
@click.option("--days", "-d", default=30, type=int, help="Number of days of data to generate (default: 30)")
@click.option("--per-day", "-n", default=200, type=int, help="Maximum installs per day (default: 200)")
@click.option("--seed", "random_seed", default=42, type=int, help="Random seed (default: 42)")
@click.option("--dry-run", is_flag=True, help="Show what would be created without making changes")
def seed(days: int, per_day: int, random_seed: int, dry_run: bool) -> None:
    """
    Seed the database with synthetic installs for development.

    Example:
        install-analytics cmd seed
        install-analytics cmd seed --days 90 --per-day 1000
        install-analytics cmd seed --dry-run
    """
    try:
        count = asyncio.run(seed_data(days, per_day, random_seed, dry_run))
    except Exception as e:
        error(f"Failed to seed database: {e}")
        raise SystemExit(1) from e

    if dry_run:
        success(f"Dry run complete. Would create up to {count} installs.")
    else:
        success(f"Seeded {count} new installs.")
