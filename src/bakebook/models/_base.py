"""Base model and timestamp type shared by all bakebook records.

Every record inherits from :class:`BakebookBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase keys (``bakingTemperature``,
  ``isUsed``) are accepted next to the snake_case field names.
* A ``model_validator(mode="before")`` that drops ``None`` values so the
  field default is used for nullable columns, while a missing required
  column still fails validation.

Timestamps go through :data:`UtcTimestamp`, which accepts datetimes,
ISO-8601 strings and epoch numbers (seconds or milliseconds) and always
yields a timezone-aware UTC datetime.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime:
    """Convert a stored timestamp to a timezone-aware UTC datetime.

    Naive values are assumed to already be in UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"unsupported timestamp value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


UtcTimestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces stored timestamps to UTC datetimes."""


class BakebookBaseModel(BaseModel):
    """Base for bakebook records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}
