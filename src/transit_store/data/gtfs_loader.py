"""GTFS feed loader: parses, validates and ingests text tables into SQLite."""

import csv
import io
import logging
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO, TypeVar

import aiosqlite
from pydantic import BaseModel, ValidationError

from transit_store.data import storage
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

ModelT = TypeVar("ModelT", bound=BaseModel)

# Feed file definitions: table_name -> (csv_filename, model, required_file)
FEED_FILES: dict[str, tuple[str, type[BaseModel], bool]] = {
    "routes": ("routes.txt", Route, True),
    "stops": ("stops.txt", Stop, True),
    "calendar": ("calendar.txt", Calendar, False),
    "calendar_dates": ("calendar_dates.txt", CalendarDate, False),
    "trips": ("trips.txt", Trip, True),
    "stop_times": ("stop_times.txt", StopTime, True),
    "shapes": ("shapes.txt", ShapePoint, False),
}

# Columns a file must declare in its header
REQUIRED_COLUMNS: dict[str, list[str]] = {
    "routes": ["route_id", "route_type"],
    "stops": ["stop_id", "stop_name", "stop_lat", "stop_lon"],
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
    "trips": ["trip_id", "route_id", "service_id"],
    "stop_times": ["trip_id", "arrival_time", "departure_time", "stop_id", "stop_sequence"],
    "shapes": ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
}


class FeedValidationError(ValueError):
    """Raised when a GTFS feed is missing data or violates the data model."""


class _FeedSource:
    """Opens GTFS text files from a directory or a ZIP archive."""

    def __init__(self, gtfs_path: Path):
        self.gtfs_path = gtfs_path
        self._zip: zipfile.ZipFile | None = None
        if gtfs_path.is_file() and gtfs_path.suffix == ".zip":
            self._zip = zipfile.ZipFile(gtfs_path, "r")

    def has(self, filename: str) -> bool:
        if self._zip is not None:
            return filename in self._zip.namelist()
        return (self.gtfs_path / filename).exists()

    @contextmanager
    def open(self, filename: str) -> Iterator[TextIO]:
        if self._zip is not None:
            with self._zip.open(filename) as f:
                yield io.TextIOWrapper(f, encoding="utf-8-sig", newline="")
        else:
            with open(self.gtfs_path / filename, encoding="utf-8-sig", newline="") as f:
                yield f

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()


class _ReferenceTracker:
    """Collects primary keys while loading to check references in later files."""

    def __init__(self) -> None:
        self.route_ids: set[str] = set()
        self.stop_ids: set[str] = set()
        self.trip_ids: set[str] = set()
        self.stop_sequences: set[tuple[str, int]] = set()

    def check(self, entity: BaseModel, location: str) -> None:
        if isinstance(entity, Route):
            self.route_ids.add(entity.route_id)
        elif isinstance(entity, Stop):
            self.stop_ids.add(entity.stop_id)
        elif isinstance(entity, Trip):
            if entity.route_id not in self.route_ids:
                raise FeedValidationError(
                    f"{location}: trip {entity.trip_id} references unknown route {entity.route_id}"
                )
            self.trip_ids.add(entity.trip_id)
        elif isinstance(entity, StopTime):
            if entity.trip_id not in self.trip_ids:
                raise FeedValidationError(
                    f"{location}: stop_time references unknown trip {entity.trip_id}"
                )
            if entity.stop_id not in self.stop_ids:
                raise FeedValidationError(
                    f"{location}: stop_time references unknown stop {entity.stop_id}"
                )
            key = (entity.trip_id, entity.stop_sequence)
            if key in self.stop_sequences:
                raise FeedValidationError(
                    f"{location}: duplicate stop_sequence {entity.stop_sequence} "
                    f"for trip {entity.trip_id}"
                )
            self.stop_sequences.add(key)


class GTFSLoader:
    """Loader for ingesting GTFS data into SQLite."""

    def __init__(self, db_path: Path, chunk_size: int = storage.CHUNK_SIZE):
        """Initialize the loader.

        Args:
            db_path: Path where the SQLite database will be created.
            chunk_size: Rows per insert transaction.
        """
        self.db_path = Path(db_path)
        self.chunk_size = chunk_size

    async def ingest(self, gtfs_path: Path) -> dict[str, int]:
        """Ingest GTFS data from a directory or ZIP file into SQLite.

        Uses atomic swap: loads into a staging DB, then replaces the target
        DB, so a failed import never leaves partial data visible.

        Args:
            gtfs_path: Path to GTFS directory or ZIP file.

        Returns:
            Dictionary with row counts per table.

        Raises:
            FileNotFoundError: If GTFS path doesn't exist.
            FeedValidationError: If required files, columns or references are
                missing, or a row fails validation.
        """
        gtfs_path = Path(gtfs_path)
        if not gtfs_path.exists():
            raise FileNotFoundError(f"GTFS path not found: {gtfs_path}")

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        temp_db = self.db_path.with_suffix(".tmp.db")

        try:
            # Remove temp db if it exists from a previous failed run
            _unlink_database(temp_db)

            async with aiosqlite.connect(temp_db) as db:
                await db.execute("PRAGMA synchronous=OFF")
                await db.execute("PRAGMA cache_size=10000")

                await storage.initialize_database(db)
                row_counts = await self._load_all_tables(db, gtfs_path)
                await self._verify_integrity(db)
                await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")

            # atomic swap
            _unlink_sidecars(self.db_path)
            temp_db.replace(self.db_path)

            logger.info(f"GTFS ingestion complete: {self.db_path}")
            return row_counts

        except Exception:
            _unlink_database(temp_db)
            raise

    async def _load_all_tables(self, db: aiosqlite.Connection, gtfs_path: Path) -> dict[str, int]:
        """Load all GTFS tables in reference order (routes/stops before trips)."""
        row_counts: dict[str, int] = {}
        tracker = _ReferenceTracker()
        source = _FeedSource(gtfs_path)

        try:
            for table_name, (csv_filename, model, required) in FEED_FILES.items():
                if not source.has(csv_filename):
                    if required:
                        raise FeedValidationError(f"Required file {csv_filename} not found")
                    logger.warning(f"Optional file {csv_filename} not found")
                    row_counts[table_name] = 0
                    continue

                logger.info(f"Loading {table_name} from {csv_filename}...")
                with source.open(csv_filename) as f:
                    entities = self._iter_entities(f, table_name, csv_filename, model, tracker)
                    row_counts[table_name] = await self._insert(db, table_name, entities)
        finally:
            source.close()

        return row_counts

    async def _insert(self, db: aiosqlite.Connection, table_name: str, entities: Iterator) -> int:
        inserters = {
            "routes": storage.insert_routes,
            "stops": storage.insert_stops,
            "calendar": storage.insert_calendars,
            "calendar_dates": storage.insert_calendar_dates,
            "trips": storage.insert_trips,
            "stop_times": storage.insert_stop_times,
            "shapes": storage.insert_shapes,
        }
        return await inserters[table_name](db, entities, self.chunk_size)

    def _iter_entities(
        self,
        f: TextIO,
        table_name: str,
        csv_filename: str,
        model: type[ModelT],
        tracker: _ReferenceTracker,
    ) -> Iterator[ModelT]:
        """Parse, validate and reference-check rows lazily."""
        reader = csv.reader(f)
        header_index = self._build_header_index(reader, table_name, model, csv_filename)
        for line_number, row in enumerate(reader, start=2):
            if not any(cell.strip() for cell in row):
                continue
            location = f"{csv_filename}:{line_number}"
            row_dict = self._row_from_index(row, header_index)
            try:
                entity = model.model_validate(row_dict)
            except ValidationError as e:
                raise FeedValidationError(f"{location}: invalid row: {e}") from e
            tracker.check(entity, location)
            yield entity

    def _convert_value(self, value: str | None) -> str | None:
        """Convert CSV value: empty strings become None so model defaults apply."""
        if value is None:
            return None
        value = value.strip()
        return value or None

    def _build_header_index(
        self,
        reader: Iterator[list[str]],
        table_name: str,
        model: type[BaseModel],
        filename: str,
    ) -> dict[str, int]:
        """Build header index mapping for a CSV reader."""
        header = next(reader, None)
        if header is None:
            raise FeedValidationError(f"{filename} is empty")
        known = set(model.model_fields)
        header_index: dict[str, int] = {}
        for idx, name in enumerate(header):
            cleaned = name.strip()
            if cleaned in known and cleaned not in header_index:
                header_index[cleaned] = idx
        missing = [col for col in REQUIRED_COLUMNS[table_name] if col not in header_index]
        if missing:
            raise FeedValidationError(f"{filename} missing columns: {', '.join(missing)}")
        return header_index

    def _row_from_index(self, row: list[str], header_index: dict[str, int]) -> dict[str, str]:
        """Map a CSV row list to a dict by header index, dropping empty cells."""
        row_dict: dict[str, str] = {}
        for col, idx in header_index.items():
            value = self._convert_value(row[idx] if idx < len(row) else None)
            if value is not None:
                row_dict[col] = value
        return row_dict

    async def _verify_integrity(self, db: aiosqlite.Connection) -> None:
        """Verify database integrity after loading."""
        logger.info("Verifying database integrity...")

        counts = await storage.get_table_counts(db)
        for table_name in ("routes", "stops", "trips", "stop_times"):
            if counts[table_name] == 0:
                raise FeedValidationError(f"No {table_name} loaded - check GTFS data")

        logger.info("Database integrity verified")


def _sidecars(db_path: Path) -> list[Path]:
    return [Path(f"{db_path}-wal"), Path(f"{db_path}-shm")]


def _unlink_sidecars(db_path: Path) -> None:
    for sidecar in _sidecars(db_path):
        sidecar.unlink(missing_ok=True)


def _unlink_database(db_path: Path) -> None:
    db_path.unlink(missing_ok=True)
    _unlink_sidecars(db_path)
