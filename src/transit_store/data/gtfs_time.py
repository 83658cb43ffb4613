"""GTFS time and date codecs.

GTFS times are ``HH:MM:SS`` strings measured from the start of the service
day. Hours can exceed 23 for trips that run past midnight ("25:10:00" is
1:10 AM the next calendar day), so no wraparound is ever applied here.
"""

import re
from datetime import date, datetime

GTFS_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
GTFS_DATE_PATTERN = re.compile(r"^\d{8}$")


def parse_time(time_str: str) -> float:
    """Convert a GTFS time string to minutes since midnight.

    Example: "25:10:00" -> 1510.0, "08:00:30" -> 480.5
    """
    hours, minutes, seconds = time_str.strip().split(":")
    return int(hours) * 60 + int(minutes) + int(seconds) / 60


def format_time(minutes: float) -> str:
    """Convert minutes since midnight back to a GTFS time string.

    Fractional minutes are rounded to the nearest second.

    Example: 1510 -> "25:10:00"
    """
    total_seconds = round(minutes * 60)
    hours, remainder = divmod(total_seconds, 3600)
    mins, secs = divmod(remainder, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def normalize_gtfs_time(time_str: str) -> str:
    """Zero-pad a GTFS time so that string comparison orders correctly.

    Example: "8:05:00" -> "08:05:00"

    Raises:
        ValueError: If the string is not H:MM:SS or HH:MM:SS.
    """
    match = GTFS_TIME_PATTERN.match(time_str.strip())
    if match is None:
        raise ValueError(f"Invalid GTFS time format (must be HH:MM:SS): {time_str!r}")
    hours, minutes, seconds = match.groups()
    return f"{int(hours):02d}:{minutes}:{seconds}"


def time_to_gtfs_format(dt: datetime) -> str:
    """Convert a datetime to GTFS time format (HH:MM:SS)."""
    return f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"


def date_to_gtfs_format(d: date) -> str:
    """Convert a date to GTFS date format (YYYYMMDD)."""
    return d.strftime("%Y%m%d")
