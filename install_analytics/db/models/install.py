"""Install event database model."""

import datetime as dt

from sqlalchemy import Boolean, Date, Integer, String, Time, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column

from install_analytics.db.models.base import Base

# Columns forming the deduplication key of an install event.
DEDUP_KEY = ("app_name", "install_time", "idfv")


class Install(Base):
    """One observed app install event pulled from the install feed.

    Rows are append-only: ingestion inserts them and skips any row whose
    (app_name, install_time, idfv) already exists.
    """

    __tablename__ = "installs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idfv: Mapped[str] = mapped_column(String(255), nullable=False)
    app_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    device_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    install_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    is_lat: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    __table_args__ = (UniqueConstraint(*DEDUP_KEY, name="uq_installs_app_time_idfv"),)

    def __repr__(self) -> str:
        return f"<Install(app_name={self.app_name}, idfv={self.idfv}, date={self.date})>"
