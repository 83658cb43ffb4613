"""Transfer finder: where riders can change between two sets of routes.

A transfer point is a pair of stops, one served by a "from" route and one
by a "to" route, that share an official name or lie within walking
distance of each other. Proximity uses a uniform lat/lon grid, which is an
approximation: cells shrink in east-west extent away from the equator, so
the cell size must stay comfortably above the search radius at the
latitudes served (0.003 degrees is roughly 330 m north-south).
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import aiosqlite

from transit_store.matching.normalizers import normalize_stop_name
from transit_store.models.responses import TransferMatch, TransferPoint
from transit_store.services.stop_service import haversine_distance, walking_minutes

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_LIMIT = 10
DEFAULT_RADIUS_METERS = 300.0
DEFAULT_CELL_SIZE_DEG = 0.003

# Upper bound on (stop, route) pairs fetched per side
MAX_VISITS_PER_SIDE = 20_000


@dataclass(frozen=True)
class StopVisit:
    """A stop served by a route."""

    route_id: str
    stop_id: str
    stop_name: str
    lat: float
    lon: float


class SpatialGrid:
    """Bucket stop visits into square lat/lon cells for neighborhood lookups."""

    def __init__(self, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG):
        if cell_size_deg <= 0:
            raise ValueError(f"cell_size_deg must be positive, got {cell_size_deg}")
        self.cell_size_deg = cell_size_deg
        self._cells: dict[tuple[int, int], list[StopVisit]] = defaultdict(list)

    def cell_of(self, lat: float, lon: float) -> tuple[int, int]:
        return (math.floor(lat / self.cell_size_deg), math.floor(lon / self.cell_size_deg))

    def add(self, visit: StopVisit) -> None:
        self._cells[self.cell_of(visit.lat, visit.lon)].append(visit)

    def neighbors(self, lat: float, lon: float) -> Iterator[StopVisit]:
        """Yield visits in the cell containing the point and the 8 around it."""
        row, col = self.cell_of(lat, lon)
        for d_row in (-1, 0, 1):
            for d_col in (-1, 0, 1):
                yield from self._cells.get((row + d_row, col + d_col), ())

    def __len__(self) -> int:
        return sum(len(visits) for visits in self._cells.values())


async def _fetch_visits(db: aiosqlite.Connection, route_ids: Sequence[str]) -> list[StopVisit]:
    """Distinct (stop, route) pairs visited by trips of the given routes."""
    placeholders = ",".join("?" * len(route_ids))
    sql = f"""
        SELECT DISTINCT t.route_id, s.stop_id, s.stop_name, s.stop_lat, s.stop_lon
        FROM stop_times st
        JOIN trips t ON st.trip_id = t.trip_id
        JOIN stops s ON st.stop_id = s.stop_id
        WHERE t.route_id IN ({placeholders})
        ORDER BY t.route_id, s.stop_id
        LIMIT ?
    """
    async with db.execute(sql, [*route_ids, MAX_VISITS_PER_SIDE]) as cursor:
        rows = await cursor.fetchall()
    return [
        StopVisit(
            route_id=row["route_id"],
            stop_id=row["stop_id"],
            stop_name=row["stop_name"],
            lat=float(row["stop_lat"]),
            lon=float(row["stop_lon"]),
        )
        for row in rows
    ]


def _transfer_point(
    from_visit: StopVisit, to_visit: StopVisit, distance: float, match_type: TransferMatch
) -> TransferPoint:
    return TransferPoint(
        from_route_id=from_visit.route_id,
        to_route_id=to_visit.route_id,
        from_stop_id=from_visit.stop_id,
        from_stop_name=from_visit.stop_name,
        from_lat=from_visit.lat,
        from_lon=from_visit.lon,
        to_stop_id=to_visit.stop_id,
        to_stop_name=to_visit.stop_name,
        to_lat=to_visit.lat,
        to_lon=to_visit.lon,
        walk_distance_meters=round(distance, 1),
        walk_minutes=walking_minutes(distance),
        match_type=match_type,
    )


async def find_transfer_stops(
    db: aiosqlite.Connection,
    from_route_ids: Sequence[str],
    to_route_ids: Sequence[str],
    limit: int = DEFAULT_TRANSFER_LIMIT,
    radius_meters: float = DEFAULT_RADIUS_METERS,
    cell_size_deg: float = DEFAULT_CELL_SIZE_DEG,
) -> list[TransferPoint]:
    """Find stops where a rider can change from one set of routes to another.

    For each stop of a "from" route, stops of "to" routes with the same
    normalized name are taken first, then stops within radius_meters,
    nearest first. At most one transfer is reported per
    (from route, to route, from stop), and a route never transfers to
    itself.

    Args:
        db: Database connection.
        from_route_ids: Routes the rider is on.
        to_route_ids: Routes the rider wants to reach.
        limit: Maximum number of transfer points.
        radius_meters: Maximum walking distance for proximity matches.
        cell_size_deg: Grid cell size in degrees; should cover radius_meters.

    Returns:
        Transfer points in discovery order.
    """
    if not from_route_ids or not to_route_ids or limit <= 0:
        return []

    from_visits = await _fetch_visits(db, from_route_ids)
    to_visits = await _fetch_visits(db, to_route_ids)

    by_name: dict[str, list[StopVisit]] = defaultdict(list)
    grid = SpatialGrid(cell_size_deg)
    for visit in to_visits:
        by_name[normalize_stop_name(visit.stop_name)].append(visit)
        grid.add(visit)

    transfers: list[TransferPoint] = []
    seen: set[tuple[str, str, str]] = set()

    def accept(from_visit: StopVisit, to_visit: StopVisit) -> bool:
        if from_visit.route_id == to_visit.route_id:
            return False
        key = (from_visit.route_id, to_visit.route_id, from_visit.stop_id)
        if key in seen:
            return False
        seen.add(key)
        return True

    for from_visit in from_visits:
        if len(transfers) >= limit:
            break

        # Same official station name
        for to_visit in by_name.get(normalize_stop_name(from_visit.stop_name), ()):
            if len(transfers) >= limit:
                break
            if accept(from_visit, to_visit):
                distance = haversine_distance(
                    from_visit.lat, from_visit.lon, to_visit.lat, to_visit.lon
                )
                transfers.append(
                    _transfer_point(from_visit, to_visit, distance, TransferMatch.NAME)
                )

        if len(transfers) >= limit:
            break

        # Walking distance
        candidates = []
        for to_visit in grid.neighbors(from_visit.lat, from_visit.lon):
            distance = haversine_distance(
                from_visit.lat, from_visit.lon, to_visit.lat, to_visit.lon
            )
            if distance <= radius_meters:
                candidates.append((distance, to_visit))
        candidates.sort(key=lambda c: (c[0], c[1].stop_id))

        for distance, to_visit in candidates:
            if len(transfers) >= limit:
                break
            if accept(from_visit, to_visit):
                transfers.append(
                    _transfer_point(from_visit, to_visit, distance, TransferMatch.PROXIMITY)
                )

    logger.debug(
        f"Transfers {list(from_route_ids)} -> {list(to_route_ids)}: "
        f"{len(from_visits)} x {len(to_visits)} visits, {len(transfers)} found"
    )
    return transfers
