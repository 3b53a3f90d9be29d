"""Idempotent persistence of feed row batches."""

import logging
from collections.abc import Mapping, Sequence

import logfire
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from install_analytics.core.exceptions import StorageError
from install_analytics.repositories.installs import InstallRepository
from install_analytics.schemas.installs import InstallRecord

logger = logging.getLogger(__name__)


class InstallWriter:
    """Converts raw feed rows and writes them with insert-or-ignore semantics.

    Each call is one transaction. Rows whose (app_name, install_time, idfv)
    already exist are skipped, so a batch may be written any number of times.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: InstallRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or InstallRepository()

    async def write(self, rows: Sequence[Mapping[str, str]]) -> int:
        """Persist one batch of feed rows.

        Returns:
            Number of rows newly written.

        Raises:
            ParseError: If a row cannot be converted to an install record.
            StorageError: On any database fault.
        """
        records = [InstallRecord.from_feed_row(row) for row in rows]

        with logfire.span("InstallWriter.write", batch_size=len(records)):
            try:
                async with self._session_factory() as db:
                    written = await self._repository.insert_ignore(db, records)
                    await db.commit()
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Failed to write batch of {len(records)} installs: {e}")
                raise StorageError(
                    f"Failed to write install batch: {e.__class__.__name__}",
                    details={"batch_size": len(records)},
                ) from e

        if written < len(records):
            logger.debug(f"Skipped {len(records) - written} already stored installs")
        return written
