"""Schedule service for querying GTFS scheduled departures."""

import logging
import statistics
from collections.abc import Collection
from datetime import datetime

import aiosqlite

from transit_store.data.gtfs_time import normalize_gtfs_time, parse_time, time_to_gtfs_format
from transit_store.models.responses import Departure, RouteDeparture
from transit_store.services.calendar_service import ServiceFilter, resolve_service_filter
from transit_store.services.stop_service import get_stop_and_child_ids

logger = logging.getLogger(__name__)

DEFAULT_DEPARTURE_LIMIT = 10

# Travel time sampling
TRAVEL_TIME_SAMPLES = 10
MAX_TRAVEL_MINUTES = 180


def _service_clause(service_ids: Collection[str] | None) -> tuple[str, list[str]]:
    """SQL fragment restricting trips to the given services (None = no filter)."""
    if service_ids is None:
        return "", []
    if not service_ids:
        return " AND 0", []
    ids = sorted(service_ids)
    return f" AND t.service_id IN ({','.join('?' * len(ids))})", ids


def calculate_minutes_until(departure_time: str, query_time: str) -> int:
    """Whole minutes from query time to departure time.

    Example: calculate_minutes_until("08:05:00", "08:02:30") -> 2
    """
    return int(parse_time(departure_time) - parse_time(query_time))


async def get_next_departures(
    db: aiosqlite.Connection,
    stop_id: str,
    limit: int = DEFAULT_DEPARTURE_LIMIT,
    now: datetime | None = None,
) -> list[Departure]:
    """Get the next scheduled departures from a stop.

    Departures are filtered by the services active on today's date. If
    the stop is a station, departures from its platforms are included.
    Trips of the same route leaving at the same time towards the same
    headsign are collapsed into one departure.

    Args:
        db: Database connection.
        stop_id: Stop or station ID.
        limit: Maximum number of departures.
        now: Query time (default: current local time).

    Returns:
        Departures in ascending time order. Empty for unknown stops.
    """
    if now is None:
        now = datetime.now()

    service_filter: ServiceFilter = await resolve_service_filter(db, now.date())
    query_time = time_to_gtfs_format(now)
    stop_ids = await get_stop_and_child_ids(db, stop_id)
    stop_placeholders = ",".join("?" * len(stop_ids))

    service_sql, service_params = _service_clause(
        service_filter.service_ids if service_filter.restricts else None
    )
    sql = f"""
        SELECT st.departure_time, MIN(t.trip_id) AS trip_id, t.route_id, t.trip_headsign,
               r.route_short_name, r.route_long_name, r.route_type, r.route_color
        FROM stop_times st
        JOIN trips t ON st.trip_id = t.trip_id
        JOIN routes r ON t.route_id = r.route_id
        WHERE st.stop_id IN ({stop_placeholders})
          AND st.departure_time >= ?{service_sql}
        GROUP BY st.departure_time, t.route_id, t.trip_headsign
        ORDER BY st.departure_time, r.route_short_name, t.route_id
        LIMIT ?
    """
    params = [*stop_ids, query_time, *service_params, limit]
    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    logger.debug(
        f"Departures for {stop_id} after {query_time} ({service_filter.state.value}): {len(rows)}"
    )

    return [
        Departure(
            trip_id=row["trip_id"],
            route_id=row["route_id"],
            route_short_name=row["route_short_name"],
            route_long_name=row["route_long_name"],
            route_type=row["route_type"],
            route_color=row["route_color"],
            trip_headsign=row["trip_headsign"],
            departure_time=row["departure_time"],
            minutes_until=calculate_minutes_until(row["departure_time"], query_time),
        )
        for row in rows
    ]


async def find_next_departure_on_route(
    db: aiosqlite.Connection,
    route_id: str,
    from_stop_id: str,
    to_stop_id: str,
    after_time: str,
    active_services: Collection[str] | None = None,
) -> RouteDeparture | None:
    """Find the earliest trip on a route from one stop to another.

    Only trips that visit from_stop_id before to_stop_id qualify.

    Args:
        db: Database connection.
        route_id: Route ID.
        from_stop_id: Boarding stop.
        to_stop_id: Alighting stop.
        after_time: Earliest departure in HH:MM:SS format.
        active_services: Service IDs to restrict to, or None for no filter.

    Returns:
        The earliest matching departure, or None.
    """
    service_sql, service_params = _service_clause(active_services)
    sql = f"""
        SELECT t.trip_id, a.departure_time, b.arrival_time
        FROM trips t
        JOIN stop_times a ON a.trip_id = t.trip_id AND a.stop_id = ?
        JOIN stop_times b ON b.trip_id = t.trip_id AND b.stop_id = ?
        WHERE t.route_id = ?
          AND a.stop_sequence < b.stop_sequence
          AND a.departure_time >= ?{service_sql}
        ORDER BY a.departure_time, t.trip_id
        LIMIT 1
    """
    params = [from_stop_id, to_stop_id, route_id, normalize_gtfs_time(after_time), *service_params]
    async with db.execute(sql, params) as cursor:
        row = await cursor.fetchone()

    if row is None:
        return None

    return RouteDeparture(
        trip_id=row["trip_id"],
        departure_time=row["departure_time"],
        arrival_time=row["arrival_time"],
        departure_minutes=parse_time(row["departure_time"]),
        arrival_minutes=parse_time(row["arrival_time"]),
    )


async def get_actual_travel_time(
    db: aiosqlite.Connection,
    route_id: str,
    from_stop_id: str,
    to_stop_id: str,
) -> float | None:
    """Median scheduled travel time in minutes between two stops on a route.

    Samples up to 10 trips. Samples that are zero, negative or at least
    three hours long are treated as data errors and discarded.

    Returns:
        Median minutes, or None if no usable sample exists.
    """
    sql = """
        SELECT a.departure_time, b.arrival_time
        FROM trips t
        JOIN stop_times a ON a.trip_id = t.trip_id AND a.stop_id = ?
        JOIN stop_times b ON b.trip_id = t.trip_id AND b.stop_id = ?
        WHERE t.route_id = ?
          AND a.stop_sequence < b.stop_sequence
        ORDER BY a.departure_time, t.trip_id
        LIMIT ?
    """
    params = (from_stop_id, to_stop_id, route_id, TRAVEL_TIME_SAMPLES)
    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    samples = []
    for row in rows:
        minutes = parse_time(row["arrival_time"]) - parse_time(row["departure_time"])
        if 0 < minutes < MAX_TRAVEL_MINUTES:
            samples.append(minutes)

    if not samples:
        return None
    return statistics.median(samples)
