"""Timezone resolution for the hour-of-day insight rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Used when the host has no IANA tzdata installed (slim containers, Windows).
_FIXED_FALLBACKS: dict[str, tzinfo] = {
    "Africa/Lagos": timezone(timedelta(hours=1)),
    "Africa/Accra": timezone.utc,
    "Africa/Nairobi": timezone(timedelta(hours=3)),
}


def resolve_timezone(tz_name: str) -> tzinfo:
    """Resolve an IANA timezone name.

    Tries ZoneInfo first, then a fixed-offset table for the deployment
    regions, then the host local zone, then UTC.
    """
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        pass

    if tz_name in _FIXED_FALLBACKS:
        return _FIXED_FALLBACKS[tz_name]

    local_tz = datetime.now().astimezone().tzinfo
    if local_tz is not None:
        return local_tz
    return timezone.utc
