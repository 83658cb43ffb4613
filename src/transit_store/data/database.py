"""Database connection helper for the GTFS SQLite store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from transit_store.data.config import get_settings
from transit_store.models.gtfs import Route, Stop

STOP_COLUMNS = "stop_id, stop_name, stop_lat, stop_lon, location_type, parent_station"
ROUTE_COLUMNS = (
    "route_id, route_short_name, route_long_name, route_type, route_color, route_text_color"
)


def get_db_path() -> Path:
    """Get the database path from settings (TRANSIT_DB_PATH) or default."""
    return get_settings().db_path


@asynccontextmanager
async def get_db(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    The connection runs in WAL mode so readers are never blocked by an
    import writing to the same file.

    Args:
        db_path: Optional path to the database. If not provided, uses
                 TRANSIT_DB_PATH or defaults to 'data/transit.db'.

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.

    Raises:
        FileNotFoundError: If the database file doesn't exist.
    """
    if db_path is None:
        db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. Run 'transit-store ingest <gtfs_path>' to create it."
        )

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL")
        yield db


def stop_from_row(row: aiosqlite.Row) -> Stop:
    """Convert a stops table row to a Stop."""
    return Stop(
        stop_id=row["stop_id"],
        stop_name=row["stop_name"],
        stop_lat=float(row["stop_lat"]),
        stop_lon=float(row["stop_lon"]),
        location_type=int(row["location_type"]) if row["location_type"] is not None else 0,
        parent_station=row["parent_station"],
    )


def route_from_row(row: aiosqlite.Row) -> Route:
    """Convert a routes table row to a Route."""
    return Route(
        route_id=row["route_id"],
        route_short_name=row["route_short_name"],
        route_long_name=row["route_long_name"],
        route_type=int(row["route_type"]),
        route_color=row["route_color"],
        route_text_color=row["route_text_color"],
    )
