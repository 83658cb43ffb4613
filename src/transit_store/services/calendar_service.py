"""Calendar resolver: which services run on a given date."""

import logging
from dataclasses import dataclass, field
from datetime import date

import aiosqlite

from transit_store.data.gtfs_time import date_to_gtfs_format
from transit_store.models.gtfs import ExceptionType
from transit_store.models.responses import CalendarState

logger = logging.getLogger(__name__)

# GTFS weekday column names indexed by day of week (0=Sunday, 6=Saturday)
WEEKDAY_COLUMNS = [
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
]


@dataclass(frozen=True)
class ServiceFilter:
    """Resolved service set for one date.

    Only the ACTIVE state restricts queries. The other states mean every
    trip is treated as running.
    """

    state: CalendarState
    service_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def restricts(self) -> bool:
        return self.state is CalendarState.ACTIVE


def weekday_column(query_date: date) -> str:
    """Calendar column for a date. Example: 2024-01-15 (Monday) -> "monday"."""
    return WEEKDAY_COLUMNS[query_date.isoweekday() % 7]


async def _has_calendar_data(db: aiosqlite.Connection) -> bool:
    sql = """
        SELECT EXISTS(SELECT 1 FROM calendar)
            OR EXISTS(SELECT 1 FROM calendar_dates)
    """
    async with db.execute(sql) as cursor:
        row = await cursor.fetchone()
    return bool(row[0]) if row else False


async def resolve_service_filter(db: aiosqlite.Connection, query_date: date) -> ServiceFilter:
    """Resolve the services active on a date.

    Implements the GTFS service day algorithm:
    1. Find services from calendar where the date is within
       [start_date, end_date] and the weekday flag is 1
    2. Apply calendar_dates exceptions (1 adds, 2 removes)

    A feed without calendar tables, or whose calendar yields nothing for
    the date, produces a non-restricting filter.

    Args:
        db: Database connection.
        query_date: Date to check for active services.

    Returns:
        ServiceFilter describing the outcome.
    """
    if not await _has_calendar_data(db):
        logger.debug("No calendar data loaded, not filtering by service")
        return ServiceFilter(CalendarState.NO_CALENDAR_DATA)

    date_str = date_to_gtfs_format(query_date)
    weekday_col = weekday_column(query_date)

    # Step 1: weekly patterns
    sql = f"""
        SELECT service_id
        FROM calendar
        WHERE {weekday_col} = 1
          AND start_date <= ?
          AND end_date >= ?
    """
    async with db.execute(sql, (date_str, date_str)) as cursor:
        rows = await cursor.fetchall()
    services = {row["service_id"] for row in rows}

    # Step 2: exceptions for exactly this date
    sql = "SELECT service_id, exception_type FROM calendar_dates WHERE date = ?"
    async with db.execute(sql, (date_str,)) as cursor:
        exceptions = await cursor.fetchall()

    for row in exceptions:
        exception_type = int(row["exception_type"])
        if exception_type == ExceptionType.ADDED:
            services.add(row["service_id"])
        elif exception_type == ExceptionType.REMOVED:
            services.discard(row["service_id"])

    if not services:
        logger.warning(
            f"No active services on {date_str}; calendar may be expired, showing all trips"
        )
        return ServiceFilter(CalendarState.EXPIRED_FALLBACK)

    return ServiceFilter(CalendarState.ACTIVE, frozenset(services))


async def get_active_service_ids(db: aiosqlite.Connection, query_date: date) -> set[str] | None:
    """Get service IDs active on a date.

    Returns:
        Set of active service IDs, or None when queries must not be
        filtered by service (no calendar data, or an expired calendar).
    """
    service_filter = await resolve_service_filter(db, query_date)
    if not service_filter.restricts:
        return None
    return set(service_filter.service_ids)
