"""
Timestamp helpers for archive names.

The time zone is always passed in explicitly; nothing here changes
process-wide time settings.
"""

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


logger = logging.getLogger(__name__)


def local_timezone() -> tzinfo:
    """Return the system's local time zone as a fixed-offset tzinfo."""
    return datetime.now().astimezone().tzinfo


def load_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA time zone name.

    Args:
        name: Zone name such as 'America/Sao_Paulo'. Empty means local time.

    Returns:
        tzinfo for the zone, or the local zone if the name is empty or unknown
    """
    if not name:
        return local_timezone()

    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Could not load timezone {name}: {e}")
        return local_timezone()

    logger.info(f"Using timezone {name}")
    return zone


def format_timestamp(moment: datetime, filename_safe: bool = False) -> str:
    """
    Format a datetime as an RFC3339 string with second precision.

    A zero UTC offset is written as 'Z'. With filename_safe, every ':' is
    replaced with '-' so the result is valid on all filesystems.

    Args:
        moment: Timezone-aware datetime
        filename_safe: Replace colons with dashes

    Returns:
        Formatted timestamp
    """
    if moment.tzinfo is None:
        raise ValueError("Timestamp must be timezone-aware")

    timestamp = moment.replace(microsecond=0).isoformat()
    if timestamp.endswith('+00:00'):
        timestamp = timestamp[:-6] + 'Z'

    if filename_safe:
        timestamp = timestamp.replace(':', '-')

    return timestamp


def current_timestamp(tz: tzinfo, filename_safe: bool = False, now: Optional[datetime] = None) -> str:
    """Format the current time (or `now`) in the given zone."""
    moment = now if now is not None else datetime.now(tz)
    return format_timestamp(moment.astimezone(tz), filename_safe)
