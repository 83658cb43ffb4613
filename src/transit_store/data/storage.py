"""Schema and bulk storage operations for the GTFS SQLite store."""

import logging
from collections.abc import Callable, Iterable, Iterator
from itertools import islice
from typing import Any, TypeVar

import aiosqlite

from transit_store.matching.normalizers import fold_text, normalize_stop_name
from transit_store.models.gtfs import (
    Calendar,
    CalendarDate,
    Route,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Schema definitions
SCHEMA_SQL = """
-- stops
CREATE TABLE IF NOT EXISTS stops (
    stop_id TEXT PRIMARY KEY,
    stop_name TEXT NOT NULL,
    stop_lat REAL NOT NULL,
    stop_lon REAL NOT NULL,
    location_type INTEGER DEFAULT 0,
    parent_station TEXT,
    stop_name_normalized TEXT,
    stop_name_folded TEXT
);

-- routes
CREATE TABLE IF NOT EXISTS routes (
    route_id TEXT PRIMARY KEY,
    route_short_name TEXT,
    route_long_name TEXT,
    route_type INTEGER NOT NULL,
    route_color TEXT,
    route_text_color TEXT,
    route_short_name_normalized TEXT,
    route_long_name_normalized TEXT
);

-- trips
CREATE TABLE IF NOT EXISTS trips (
    trip_id TEXT PRIMARY KEY,
    route_id TEXT NOT NULL,
    service_id TEXT NOT NULL,
    trip_headsign TEXT,
    direction_id INTEGER DEFAULT 0,
    shape_id TEXT
);

-- stop_times
CREATE TABLE IF NOT EXISTS stop_times (
    trip_id TEXT NOT NULL,
    arrival_time TEXT NOT NULL,
    departure_time TEXT NOT NULL,
    stop_id TEXT NOT NULL,
    stop_sequence INTEGER NOT NULL,
    PRIMARY KEY (trip_id, stop_sequence)
);

-- calendar
CREATE TABLE IF NOT EXISTS calendar (
    service_id TEXT PRIMARY KEY,
    monday INTEGER NOT NULL,
    tuesday INTEGER NOT NULL,
    wednesday INTEGER NOT NULL,
    thursday INTEGER NOT NULL,
    friday INTEGER NOT NULL,
    saturday INTEGER NOT NULL,
    sunday INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL
);

-- calendar_dates
CREATE TABLE IF NOT EXISTS calendar_dates (
    service_id TEXT NOT NULL,
    date TEXT NOT NULL,
    exception_type INTEGER NOT NULL,
    PRIMARY KEY (service_id, date)
);

-- shapes
CREATE TABLE IF NOT EXISTS shapes (
    shape_id TEXT NOT NULL,
    shape_pt_lat REAL NOT NULL,
    shape_pt_lon REAL NOT NULL,
    shape_pt_sequence INTEGER NOT NULL,
    PRIMARY KEY (shape_id, shape_pt_sequence)
);
"""

INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_stops_coords ON stops(stop_lat, stop_lon);
CREATE INDEX IF NOT EXISTS idx_stops_name ON stops(stop_name COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_stops_parent ON stops(parent_station);
CREATE INDEX IF NOT EXISTS idx_routes_short_name ON routes(route_short_name);
CREATE INDEX IF NOT EXISTS idx_routes_type ON routes(route_type);
CREATE INDEX IF NOT EXISTS idx_trips_route ON trips(route_id);
CREATE INDEX IF NOT EXISTS idx_trips_service ON trips(service_id);
CREATE INDEX IF NOT EXISTS idx_stop_times_stop_departure ON stop_times(stop_id, departure_time);
CREATE INDEX IF NOT EXISTS idx_stop_times_trip ON stop_times(trip_id, stop_sequence);
CREATE INDEX IF NOT EXISTS idx_calendar_dates_date ON calendar_dates(date);
"""

# Table name -> inserted columns, in placeholder order
TABLE_COLUMNS: dict[str, list[str]] = {
    "stops": [
        "stop_id",
        "stop_name",
        "stop_lat",
        "stop_lon",
        "location_type",
        "parent_station",
        "stop_name_normalized",
        "stop_name_folded",
    ],
    "routes": [
        "route_id",
        "route_short_name",
        "route_long_name",
        "route_type",
        "route_color",
        "route_text_color",
        "route_short_name_normalized",
        "route_long_name_normalized",
    ],
    "trips": [
        "trip_id",
        "route_id",
        "service_id",
        "trip_headsign",
        "direction_id",
        "shape_id",
    ],
    "stop_times": [
        "trip_id",
        "arrival_time",
        "departure_time",
        "stop_id",
        "stop_sequence",
    ],
    "calendar": [
        "service_id",
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
        "sunday",
        "start_date",
        "end_date",
    ],
    "calendar_dates": ["service_id", "date", "exception_type"],
    "shapes": ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
}

# Chunk size for bulk inserts (rows per transaction)
CHUNK_SIZE = 10000


async def initialize_database(db: aiosqlite.Connection) -> None:
    """Create tables and indexes if missing and switch to WAL journaling.

    Safe to call on every startup.
    """
    mode = await enable_wal(db)
    if mode != "wal":
        logger.warning(f"WAL journaling unavailable, SQLite reported journal_mode={mode}")
    await db.executescript(SCHEMA_SQL)
    await db.executescript(INDEX_SQL)
    await db.commit()


async def enable_wal(db: aiosqlite.Connection) -> str:
    """Enable write-ahead logging and return the resulting journal mode."""
    async with db.execute("PRAGMA journal_mode=WAL") as cursor:
        row = await cursor.fetchone()
    return str(row[0]).lower() if row else ""


def _chunked(rows: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield lists of at most `size` items without materializing the input."""
    iterator = iter(rows)
    while chunk := list(islice(iterator, size)):
        yield chunk


async def _bulk_insert(
    db: aiosqlite.Connection,
    table_name: str,
    entities: Iterable[T],
    to_row: Callable[[T], tuple[Any, ...]],
    chunk_size: int | None = None,
) -> int:
    """Upsert entities into a table, one transaction per chunk.

    A single INSERT OR REPLACE statement is executed once per row. Any
    failure rolls back the open transaction and re-raises.

    Returns:
        Number of rows written.
    """
    columns = TABLE_COLUMNS[table_name]
    placeholders = ",".join(["?"] * len(columns))
    insert_sql = (
        f"INSERT OR REPLACE INTO {table_name} ({','.join(columns)}) VALUES ({placeholders})"
    )

    total_rows = 0
    for chunk in _chunked(entities, chunk_size or CHUNK_SIZE):
        try:
            await db.execute("BEGIN")
            await db.executemany(insert_sql, [to_row(entity) for entity in chunk])
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error(f"Failed to insert {table_name} batch after {total_rows:,} rows")
            raise
        total_rows += len(chunk)

    logger.info(f"  Inserted {total_rows:,} rows into {table_name}")
    return total_rows


def _normalized_or_none(name: str | None) -> str | None:
    return normalize_stop_name(name) if name else None


async def insert_stops(
    db: aiosqlite.Connection, stops: Iterable[Stop], chunk_size: int | None = None
) -> int:
    """Insert or replace stops."""
    return await _bulk_insert(
        db,
        "stops",
        stops,
        lambda s: (
            s.stop_id,
            s.stop_name,
            s.stop_lat,
            s.stop_lon,
            s.location_type,
            s.parent_station,
            normalize_stop_name(s.stop_name),
            fold_text(s.stop_name),
        ),
        chunk_size,
    )


async def insert_routes(
    db: aiosqlite.Connection, routes: Iterable[Route], chunk_size: int | None = None
) -> int:
    """Insert or replace routes."""
    return await _bulk_insert(
        db,
        "routes",
        routes,
        lambda r: (
            r.route_id,
            r.route_short_name,
            r.route_long_name,
            r.route_type,
            r.route_color,
            r.route_text_color,
            _normalized_or_none(r.route_short_name),
            _normalized_or_none(r.route_long_name),
        ),
        chunk_size,
    )


async def insert_trips(
    db: aiosqlite.Connection, trips: Iterable[Trip], chunk_size: int | None = None
) -> int:
    """Insert or replace trips."""
    return await _bulk_insert(
        db,
        "trips",
        trips,
        lambda t: (
            t.trip_id,
            t.route_id,
            t.service_id,
            t.trip_headsign,
            t.direction_id,
            t.shape_id,
        ),
        chunk_size,
    )


async def insert_stop_times(
    db: aiosqlite.Connection, stop_times: Iterable[StopTime], chunk_size: int | None = None
) -> int:
    """Insert or replace stop times."""
    return await _bulk_insert(
        db,
        "stop_times",
        stop_times,
        lambda st: (
            st.trip_id,
            st.arrival_time,
            st.departure_time,
            st.stop_id,
            st.stop_sequence,
        ),
        chunk_size,
    )


async def insert_calendars(
    db: aiosqlite.Connection, calendars: Iterable[Calendar], chunk_size: int | None = None
) -> int:
    """Insert or replace weekly service patterns."""
    return await _bulk_insert(
        db,
        "calendar",
        calendars,
        lambda c: (
            c.service_id,
            int(c.monday),
            int(c.tuesday),
            int(c.wednesday),
            int(c.thursday),
            int(c.friday),
            int(c.saturday),
            int(c.sunday),
            c.start_date,
            c.end_date,
        ),
        chunk_size,
    )


async def insert_calendar_dates(
    db: aiosqlite.Connection,
    calendar_dates: Iterable[CalendarDate],
    chunk_size: int | None = None,
) -> int:
    """Insert or replace dated service exceptions."""
    return await _bulk_insert(
        db,
        "calendar_dates",
        calendar_dates,
        lambda cd: (cd.service_id, cd.date, cd.exception_type),
        chunk_size,
    )


async def insert_shapes(
    db: aiosqlite.Connection, shapes: Iterable[ShapePoint], chunk_size: int | None = None
) -> int:
    """Insert or replace shape points."""
    return await _bulk_insert(
        db,
        "shapes",
        shapes,
        lambda sp: (sp.shape_id, sp.shape_pt_lat, sp.shape_pt_lon, sp.shape_pt_sequence),
        chunk_size,
    )


async def clear_all_tables(db: aiosqlite.Connection) -> None:
    """Delete every row from every table in a single transaction."""
    try:
        await db.execute("BEGIN")
        for table_name in TABLE_COLUMNS:
            await db.execute(f"DELETE FROM {table_name}")
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("All tables cleared")


async def drop_all_tables(db: aiosqlite.Connection) -> None:
    """Drop all tables (indexes go with them)."""
    for table_name in reversed(list(TABLE_COLUMNS)):
        await db.execute(f"DROP TABLE IF EXISTS {table_name}")
    await db.commit()
    logger.info("All tables dropped")


async def get_table_counts(db: aiosqlite.Connection) -> dict[str, int]:
    """Get row counts for all tables in the database.

    Returns:
        Dictionary mapping table names to row counts.
    """
    counts: dict[str, int] = {}
    for table_name in TABLE_COLUMNS:
        async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
            row = await cursor.fetchone()
            counts[table_name] = row[0] if row else 0
    return counts


async def is_database_empty(db: aiosqlite.Connection) -> bool:
    """Return True if no stops and no routes are loaded (initial load needed)."""
    counts = await get_table_counts(db)
    return counts["stops"] == 0 and counts["routes"] == 0
