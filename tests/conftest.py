"""Shared fixtures: the sample feed written to disk and ingested into SQLite."""

from collections.abc import AsyncIterator
from pathlib import Path

import aiosqlite
import pytest

from sample_feed import write_feed
from transit_store.data.config import StoreSettings
from transit_store.data.database import get_db
from transit_store.data.gtfs_loader import GTFSLoader
from transit_store.store import TransitStore


@pytest.fixture
def sample_gtfs_dir(tmp_path: Path) -> Path:
    """Create a sample GTFS directory with the İzmir feed."""
    return write_feed(tmp_path / "gtfs")


@pytest.fixture
async def db_path(sample_gtfs_dir: Path, tmp_path: Path) -> Path:
    """Ingest the sample feed and return the database path."""
    path = tmp_path / "transit.db"
    await GTFSLoader(path).ingest(sample_gtfs_dir)
    return path


@pytest.fixture
async def db(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """Open connection on the ingested sample feed."""
    async with get_db(db_path) as conn:
        yield conn


@pytest.fixture
def store(db: aiosqlite.Connection) -> TransitStore:
    return TransitStore(db, StoreSettings())


@pytest.fixture
def ingest_feed(tmp_path: Path):
    """Factory: ingest the sample feed with some files replaced or omitted."""

    async def _ingest(name: str = "custom", **overrides: str | None) -> Path:
        gtfs_dir = write_feed(tmp_path / name, **overrides)
        path = tmp_path / f"{name}.db"
        await GTFSLoader(path).ingest(gtfs_dir)
        return path

    return _ingest
