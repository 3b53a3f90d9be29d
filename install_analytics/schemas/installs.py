"""Install feed row schema."""

import datetime as dt
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from install_analytics.core.exceptions import ParseError

# Columns of the install feed, in the order the feed publishes them.
FEED_COLUMNS = ("idfv", "app_name", "city", "device_model", "install_time", "date", "is_lat")
REQUIRED_FEED_COLUMNS = ("idfv", "app_name", "install_time", "date")


class InstallRecord(BaseModel):
    """A validated install event, ready to be written to the record store."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="ignore")

    idfv: str = Field(min_length=1, max_length=255)
    app_name: str = Field(min_length=1, max_length=100)
    city: str | None = Field(default=None, max_length=100)
    device_model: str | None = Field(default=None, max_length=100)
    install_time: dt.time
    date: dt.date
    is_lat: bool = False

    @field_validator("city", "device_model", mode="before")
    @classmethod
    def blank_as_unknown(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("is_lat", mode="before")
    @classmethod
    def blank_as_false(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_feed_row(cls, row: Mapping[str, str]) -> "InstallRecord":
        """Convert a raw feed row, raising ParseError when a value is unusable."""
        try:
            return cls.model_validate(dict(row))
        except PydanticValidationError as e:
            problems = [
                {"field": ".".join(str(part) for part in err["loc"]), "error": err["msg"]}
                for err in e.errors()
            ]
            raise ParseError(
                f"Malformed install row for idfv={row.get('idfv')!r}",
                details={"problems": problems},
            ) from e
