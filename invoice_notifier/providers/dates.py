import re
from datetime import datetime, timezone
from typing import Optional

_ASPNET_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


def parse_aspnet_date(value: str) -> datetime:
    """Parse the ASP.NET JSON date format, e.g. ``/Date(1762898400000+0200)/``.

    The millisecond count is already a UTC epoch; the offset only says which
    zone the server rendered it in, so it does not shift the instant.
    """
    match = _ASPNET_DATE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid date format: {value!r}")
    return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)


def parse_iso_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    if value in (None, ""):
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
