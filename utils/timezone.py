"""
Time handling for the pipeline.

Everything is stored and compared in UTC. Conversion to a local zone happens
only when text is rendered for people: lead notes and email bodies.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

NOTE_STAMP_FORMAT = "%d/%m/%Y %H:%M"


def _require_aware(dt: datetime) -> None:
    if dt.tzinfo is None:
        raise ValueError("Cannot convert naive datetime; attach a timezone first.")


def now_utc() -> datetime:
    """Current time in UTC. Use instead of datetime.now()."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Aware datetime in UTC. Raises ValueError for naive input."""
    _require_aware(dt)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Aware datetime shifted into an IANA zone (e.g. "Asia/Jerusalem").

    Raises:
        ValueError: If datetime is naive or the zone is unknown
    """
    _require_aware(dt)
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz_name}") from e
    return dt.astimezone(zone)


def format_local(dt: datetime, tz_name: str) -> str:
    """Note stamp 'DD/MM/YYYY HH:MM' in the given zone."""
    return to_local(dt, tz_name).strftime(NOTE_STAMP_FORMAT)
