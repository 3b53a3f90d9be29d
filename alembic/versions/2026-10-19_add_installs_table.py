"""Add installs table

Revision ID: 7c1e4a9b2f30
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c1e4a9b2f30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "installs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("idfv", sa.String(255), nullable=False),
        sa.Column("app_name", sa.String(100), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("device_model", sa.String(100), nullable=True),
        sa.Column("install_time", sa.Time(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_lat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id", name=op.f("installs_pkey")),
        sa.UniqueConstraint("app_name", "install_time", "idfv", name="uq_installs_app_time_idfv"),
    )
    op.create_index(op.f("ix_installs_app_name"), "installs", ["app_name"], unique=False)
    op.create_index(op.f("ix_installs_date"), "installs", ["date"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_installs_date"), table_name="installs")
    op.drop_index(op.f("ix_installs_app_name"), table_name="installs")
    op.drop_table("installs")
