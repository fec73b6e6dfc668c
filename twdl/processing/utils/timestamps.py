from datetime import datetime, timezone
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from twdl.errors import ConfigError

_datetime_adapter = TypeAdapter(datetime)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Interpret a user supplied time as an aware UTC datetime.

    Accepts RFC 3339 / ISO 8601 datetimes, bare dates (midnight) and Unix
    epoch seconds. Values without an offset are taken as UTC.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        raise ConfigError("empty timestamp")

    try:
        parsed = _datetime_adapter.validate_python(text)
    except ValidationError as e:
        raise ConfigError(f"could not interpret {value!r} as a date or time: {e.errors()[0]['msg']}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
