"""Repository for writing install records."""

from collections.abc import Sequence

import logfire
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from install_analytics.db.models.install import DEDUP_KEY, Install
from install_analytics.schemas.installs import InstallRecord

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class InstallRepository:
    """Repository for install record writes.

    Follows Pattern 1: session passed to methods (not held in __init__).
    """

    async def insert_ignore(
        self,
        db: AsyncSession,
        records: Sequence[InstallRecord],
    ) -> int:
        """Insert records, skipping any that collide on the deduplication key.

        Rows already present (from an earlier run or an earlier attempt of the
        same batch) are skipped by the database rather than raising, so
        re-inserting a batch is always safe.

        Args:
            db: Async database session. The caller owns the transaction.
            records: Validated install records.

        Returns:
            Number of rows newly written.
        """
        if not records:
            return 0

        dialect = db.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise NotImplementedError(f"insert-ignore is not supported on {dialect}")

        stmt = (
            insert(Install)
            .values([record.model_dump() for record in records])
            .on_conflict_do_nothing(index_elements=list(DEDUP_KEY))
            .returning(Install.id)
        )

        with logfire.span("InstallRepository.insert_ignore", batch_size=len(records)):
            result = await db.execute(stmt)
            written = len(result.all())
            logfire.info("Batch inserted", written=written, skipped=len(records) - written)
            return written
