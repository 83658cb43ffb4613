"""Stop and route lookups: by ID, through the stop_times graph, and by location."""

import logging
import math
from collections.abc import Sequence

import aiosqlite

from transit_store.data.database import (
    ROUTE_COLUMNS,
    STOP_COLUMNS,
    route_from_row,
    stop_from_row,
)
from transit_store.matching.normalizers import (
    base_station_name,
    natural_sort_key,
    normalize_stop_name,
)
from transit_store.matching.search import route_sort_key
from transit_store.models.gtfs import Route, RouteType, Stop
from transit_store.models.responses import NearbyStop
from transit_store.services.recovery import (
    DEFAULT_RECOVERY_STRATEGIES,
    RecoveryKind,
    RecoveryStrategy,
    TransitMode,
    infer_mode,
)

logger = logging.getLogger(__name__)

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000

# 5 km/h
WALKING_SPEED_METERS_PER_HOUR = 5000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def walking_minutes(distance_meters: float) -> int:
    """Walking time at 5 km/h, rounded up to whole minutes."""
    return math.ceil(distance_meters * 60 / WALKING_SPEED_METERS_PER_HOUR)


async def get_stop_by_id(db: aiosqlite.Connection, stop_id: str) -> Stop | None:
    """Get a single stop by its ID, or None if unknown."""
    sql = f"SELECT {STOP_COLUMNS} FROM stops WHERE stop_id = ?"
    async with db.execute(sql, (stop_id,)) as cursor:
        row = await cursor.fetchone()
    return stop_from_row(row) if row is not None else None


async def get_route_by_id(db: aiosqlite.Connection, route_id: str) -> Route | None:
    """Get a single route by its ID, or None if unknown."""
    sql = f"SELECT {ROUTE_COLUMNS} FROM routes WHERE route_id = ?"
    async with db.execute(sql, (route_id,)) as cursor:
        row = await cursor.fetchone()
    return route_from_row(row) if row is not None else None


async def get_stop_and_child_ids(db: aiosqlite.Connection, stop_id: str) -> list[str]:
    """Return the stop ID followed by any platforms whose parent_station is it.

    Stop times reference platforms, so a station on its own has none.
    """
    sql = "SELECT stop_id FROM stops WHERE parent_station = ? ORDER BY stop_id"
    async with db.execute(sql, (stop_id,)) as cursor:
        rows = await cursor.fetchall()
    return [stop_id, *(row["stop_id"] for row in rows)]


def _dedupe_routes(routes: list[Route]) -> list[Route]:
    """Drop routes with the same normalized short and long name, keeping the first."""
    seen: set[tuple[str, str]] = set()
    unique: list[Route] = []
    for route in routes:
        key = (
            normalize_stop_name(route.route_short_name or ""),
            normalize_stop_name(route.route_long_name or ""),
        )
        if key not in seen:
            seen.add(key)
            unique.append(route)
    return unique


async def get_routes_by_stop_id(
    db: aiosqlite.Connection,
    stop_id: str,
    include_bus: bool = True,
    strategies: Sequence[RecoveryStrategy] = DEFAULT_RECOVERY_STRATEGIES,
) -> list[Route]:
    """Get the routes serving a stop.

    Routes are found through stop_times -> trips -> routes. A station
    includes the routes of its child platforms. If the graph has nothing
    for the stop, the recovery strategies guess the stop's mode and every
    route of that mode is returned instead (which may include routes that
    never call at the stop).

    Args:
        db: Database connection.
        stop_id: Stop or station ID.
        include_bus: If False, bus routes (route_type 3) are dropped.
        strategies: Ordered recovery strategies.

    Returns:
        Routes sorted by short name, then long name. Empty for unknown stops.
    """
    stop_ids = await get_stop_and_child_ids(db, stop_id)
    placeholders = ",".join("?" * len(stop_ids))
    sql = f"""
        SELECT DISTINCT r.route_id, r.route_short_name, r.route_long_name,
               r.route_type, r.route_color, r.route_text_color
        FROM stop_times st
        JOIN trips t ON st.trip_id = t.trip_id
        JOIN routes r ON t.route_id = r.route_id
        WHERE st.stop_id IN ({placeholders})
    """
    async with db.execute(sql, stop_ids) as cursor:
        rows = await cursor.fetchall()
    routes = [route_from_row(row) for row in rows]

    if not routes:
        routes = await _recover_routes_for_stop(db, stop_id, strategies)

    if not include_bus:
        routes = [route for route in routes if route.route_type != RouteType.BUS]

    routes = _dedupe_routes(routes)
    routes.sort(key=route_sort_key)
    return routes


async def _recover_routes_for_stop(
    db: aiosqlite.Connection,
    stop_id: str,
    strategies: Sequence[RecoveryStrategy],
) -> list[Route]:
    stop = await get_stop_by_id(db, stop_id)
    if stop is None:
        return []

    inferred = infer_mode(stop.stop_id, stop.stop_name, strategies)
    if inferred is None:
        return []
    mode, kind = inferred

    sql = f"SELECT {ROUTE_COLUMNS} FROM routes WHERE route_type = ?"
    async with db.execute(sql, (int(mode.route_type),)) as cursor:
        rows = await cursor.fetchall()

    logger.info(
        f"No stop_times for stop {stop_id}; {kind.value} recovery inferred {mode.value}, "
        f"returning {len(rows)} routes"
    )
    return [route_from_row(row) for row in rows]


async def get_stops_by_route_id(
    db: aiosqlite.Connection,
    route_id: str,
    strategies: Sequence[RecoveryStrategy] = DEFAULT_RECOVERY_STRATEGIES,
) -> list[Stop]:
    """Get the stops of a route in travel order.

    Uses the route's longest trip (most stop_times) as the representative
    pattern. Without stop_times for the route, the recovery strategies
    guess the route's mode and every stop of that mode is returned, sorted
    by name.

    Args:
        db: Database connection.
        route_id: Route ID.
        strategies: Ordered recovery strategies.

    Returns:
        Stops ordered by stop_sequence. Empty for unknown routes.
    """
    sql = """
        SELECT t.trip_id, COUNT(*) AS stop_count
        FROM trips t
        JOIN stop_times st ON st.trip_id = t.trip_id
        WHERE t.route_id = ?
        GROUP BY t.trip_id
        ORDER BY stop_count DESC, t.trip_id
        LIMIT 1
    """
    async with db.execute(sql, (route_id,)) as cursor:
        trip_row = await cursor.fetchone()

    if trip_row is None:
        return await _recover_stops_for_route(db, route_id, strategies)

    sql = """
        SELECT s.stop_id, s.stop_name, s.stop_lat, s.stop_lon,
               s.location_type, s.parent_station
        FROM stop_times st
        JOIN stops s ON st.stop_id = s.stop_id
        WHERE st.trip_id = ?
        ORDER BY st.stop_sequence
    """
    async with db.execute(sql, (trip_row["trip_id"],)) as cursor:
        rows = await cursor.fetchall()
    return [stop_from_row(row) for row in rows]


async def _recover_stops_for_route(
    db: aiosqlite.Connection,
    route_id: str,
    strategies: Sequence[RecoveryStrategy],
) -> list[Stop]:
    route = await get_route_by_id(db, route_id)
    if route is None:
        return []

    mode = TransitMode.from_route_type(route.route_type)
    if mode is not None:
        kind = RecoveryKind.ROUTE_TYPE
    else:
        route_name = route.route_long_name or route.route_short_name
        inferred = infer_mode(route.route_id, route_name, strategies)
        if inferred is None:
            return []
        mode, kind = inferred

    async with db.execute(f"SELECT {STOP_COLUMNS} FROM stops") as cursor:
        rows = await cursor.fetchall()

    stops = []
    for row in rows:
        stop_inferred = infer_mode(row["stop_id"], row["stop_name"], strategies)
        if stop_inferred is not None and stop_inferred[0] is mode:
            stops.append(stop_from_row(row))

    logger.info(
        f"No stop_times for route {route_id}; {kind.value} recovery inferred {mode.value}, "
        f"returning {len(stops)} stops"
    )
    stops.sort(key=lambda stop: natural_sort_key(stop.stop_name))
    return stops


async def get_stops_in_bounds(
    db: aiosqlite.Connection,
    min_lat: float,
    min_lon: float,
    max_lat: float,
    max_lon: float,
) -> list[Stop]:
    """Get every stop inside a latitude/longitude box (inclusive)."""
    sql = f"""
        SELECT {STOP_COLUMNS}
        FROM stops
        WHERE stop_lat BETWEEN ? AND ?
          AND stop_lon BETWEEN ? AND ?
        ORDER BY stop_id
    """
    async with db.execute(sql, (min_lat, max_lat, min_lon, max_lon)) as cursor:
        rows = await cursor.fetchall()
    return [stop_from_row(row) for row in rows]


async def find_nearby_stops(
    db: aiosqlite.Connection,
    lat: float,
    lon: float,
    radius_meters: float = 500,
    limit: int | None = 10,
) -> list[NearbyStop]:
    """Find physical stops near a location.

    Uses a bounding box filter for efficient SQL query, then calculates
    exact haversine distance for final filtering and sorting. Stations
    (location_type 1) are skipped since riders board at their platforms.

    Args:
        db: Database connection.
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        radius_meters: Search radius in meters.
        limit: Maximum number of results, or None for all.

    Returns:
        Stops sorted by distance, nearest first.
    """
    # 1 degree of latitude ~= 111,000 meters; longitude shrinks with latitude
    lat_delta = radius_meters / 111_000
    lon_delta = radius_meters / (111_000 * max(math.cos(math.radians(lat)), 1e-6))

    sql = f"""
        SELECT {STOP_COLUMNS}
        FROM stops
        WHERE stop_lat BETWEEN ? AND ?
          AND stop_lon BETWEEN ? AND ?
          AND COALESCE(location_type, 0) = 0
    """
    params = (lat - lat_delta, lat + lat_delta, lon - lon_delta, lon + lon_delta)
    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    # Calculate exact distances and filter
    nearby: list[NearbyStop] = []
    for row in rows:
        distance = haversine_distance(lat, lon, row["stop_lat"], row["stop_lon"])
        if distance <= radius_meters:
            stop = stop_from_row(row)
            nearby.append(NearbyStop(**stop.model_dump(), distance_meters=round(distance, 1)))

    nearby.sort(key=lambda s: (s.distance_meters, s.stop_id))
    return nearby if limit is None else nearby[:limit]


async def find_best_nearby_stops(
    db: aiosqlite.Connection,
    lat: float,
    lon: float,
    count: int = 5,
    radius_meters: float = 800,
) -> list[NearbyStop]:
    """Find the closest stop of each distinct station near a location.

    Platforms of the same station ("Hilal Metro", "Hilal İzban") share a
    base station name; only the closest one is kept.
    """
    seen: set[str] = set()
    best: list[NearbyStop] = []
    for stop in await find_nearby_stops(db, lat, lon, radius_meters, limit=None):
        key = base_station_name(stop.stop_name)
        if key in seen:
            continue
        seen.add(key)
        best.append(stop)
        if len(best) >= count:
            break
    return best
