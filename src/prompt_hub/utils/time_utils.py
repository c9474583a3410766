"""Timestamp helpers shared by the store, backups and sync."""

from datetime import datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser

# Oldest possible instant, used when a timestamp is missing or unparseable
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format an aware datetime as ISO-8601 with a trailing 'Z'."""
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def now_iso() -> str:
    """Get the current UTC time as an ISO-8601 string."""
    return to_iso(utc_now())


def parse_timestamp(value: Optional[Union[str, datetime]]) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. Missing or unparseable values
    map to the epoch so they always compare as the oldest.

    Args:
        value: Timestamp string or datetime

    Returns:
        Aware datetime in UTC
    """
    if value is None or value == '':
        return EPOCH

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, OverflowError):
                return EPOCH

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def filename_timestamp(value: datetime) -> str:
    """Build a sortable, filesystem safe timestamp from a datetime.

    '2024-01-01T10:20:30.123456Z' becomes '2024-01-01T10-20-30-123456Z'.
    """
    stamp = value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')
    return stamp.replace(':', '-').replace('.', '-')


def timestamp_from_filename(stem: str) -> Optional[datetime]:
    """Recover the datetime embedded by :func:`filename_timestamp`, if any."""
    try:
        return datetime.strptime(stem, '%Y-%m-%dT%H-%M-%S-%fZ').replace(tzinfo=timezone.utc)
    except ValueError:
        return None
