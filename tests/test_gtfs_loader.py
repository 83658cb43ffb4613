"""Tests for GTFS data ingestion."""

import zipfile
from pathlib import Path

import aiosqlite
import pytest

from sample_feed import FEED_FILES, STOP_TIMES, TRIPS, write_feed
from transit_store.data.gtfs_loader import FeedValidationError, GTFSLoader
from transit_store.data.storage import get_table_counts


@pytest.fixture
def sample_gtfs_zip(sample_gtfs_dir: Path, tmp_path: Path) -> Path:
    """Create a sample GTFS ZIP file."""
    zip_path = tmp_path / "gtfs.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        for filename in FEED_FILES:
            zf.write(sample_gtfs_dir / filename, filename)
    return zip_path


async def _counts(db_path: Path) -> dict[str, int]:
    async with aiosqlite.connect(db_path) as db:
        return await get_table_counts(db)


class TestGTFSLoader:
    """Tests for GTFSLoader class."""

    async def test_ingest_from_directory(self, sample_gtfs_dir: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        row_counts = await GTFSLoader(db_path).ingest(sample_gtfs_dir)

        assert db_path.exists()
        assert row_counts == {
            "routes": 5,
            "stops": 12,
            "calendar": 2,
            "calendar_dates": 2,
            "trips": 8,
            "stop_times": 26,
            "shapes": 0,
        }

    async def test_ingest_from_zip(self, sample_gtfs_zip: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        row_counts = await GTFSLoader(db_path).ingest(sample_gtfs_zip)

        assert row_counts["stop_times"] == 26
        assert (await _counts(db_path))["stops"] == 12

    async def test_small_chunks_load_everything(
        self, sample_gtfs_dir: Path, tmp_path: Path
    ) -> None:
        db_path = tmp_path / "test.db"
        await GTFSLoader(db_path, chunk_size=3).ingest(sample_gtfs_dir)

        assert (await _counts(db_path))["stop_times"] == 26

    async def test_utf8_bom_header(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(tmp_path / "gtfs")
        content = (gtfs_dir / "routes.txt").read_text(encoding="utf-8")
        (gtfs_dir / "routes.txt").write_text("\ufeff" + content, encoding="utf-8")

        row_counts = await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)
        assert row_counts["routes"] == 5

    async def test_optional_files_may_be_missing(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(tmp_path / "gtfs", calendar=None, calendar_dates=None)

        row_counts = await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

        assert row_counts["calendar"] == 0
        assert row_counts["calendar_dates"] == 0

    async def test_times_are_zero_padded(self, db_path: Path) -> None:
        async with aiosqlite.connect(db_path) as db:
            async with db.execute(
                "SELECT departure_time FROM stop_times WHERE trip_id = 'M1_WD_3' "
                "ORDER BY stop_sequence"
            ) as cursor:
                times = [row[0] async for row in cursor]

        assert times == ["08:10:00", "08:13:00", "08:16:00", "08:40:00"]

    async def test_null_values_handled(self, db_path: Path) -> None:
        """Empty CSV values become NULL in the database."""
        async with aiosqlite.connect(db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM routes WHERE route_id = 'F1'") as cursor:
                route = await cursor.fetchone()

        assert route["route_short_name"] is None
        assert route["route_color"] is None

    async def test_creates_parent_directories(self, sample_gtfs_dir: Path, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "nested" / "test.db"
        await GTFSLoader(db_path).ingest(sample_gtfs_dir)

        assert db_path.exists()

    async def test_missing_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await GTFSLoader(tmp_path / "test.db").ingest(tmp_path / "nope")


class TestAtomicSwap:
    """A failed import never leaves partial data visible."""

    async def test_atomic_swap_replaces_existing(
        self, sample_gtfs_dir: Path, tmp_path: Path
    ) -> None:
        db_path = tmp_path / "test.db"
        await GTFSLoader(db_path).ingest(sample_gtfs_dir)

        smaller = write_feed(
            tmp_path / "gtfs2",
            trips="trip_id,route_id,service_id\nM1_WD_1,M1,WD\n",
            stop_times=(
                "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
                "M1_WD_1,08:00:00,08:00:00,metro_konak,1\n"
            ),
        )
        await GTFSLoader(db_path).ingest(smaller)

        counts = await _counts(db_path)
        assert counts["trips"] == 1
        assert counts["stop_times"] == 1

    async def test_failure_keeps_previous_database(
        self, sample_gtfs_dir: Path, tmp_path: Path
    ) -> None:
        db_path = tmp_path / "test.db"
        await GTFSLoader(db_path).ingest(sample_gtfs_dir)

        broken = write_feed(
            tmp_path / "broken",
            stop_times=STOP_TIMES + "M1_WD_1,09:00:00,09:00:00,unknown_stop,9\n",
        )
        with pytest.raises(FeedValidationError):
            await GTFSLoader(db_path).ingest(broken)

        assert (await _counts(db_path))["stop_times"] == 26
        assert not (tmp_path / "test.tmp.db").exists()

    async def test_failure_without_previous_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        broken = write_feed(tmp_path / "broken", stops=None)

        with pytest.raises(FeedValidationError, match="stops.txt"):
            await GTFSLoader(db_path).ingest(broken)

        assert not db_path.exists()
        assert not (tmp_path / "test.tmp.db").exists()


class TestFeedValidation:
    """Tests for rejecting feeds that violate the data model."""

    async def test_missing_required_column(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            stops="stop_id,stop_name,stop_lat\nS1,Konak,38.4\n",
        )
        with pytest.raises(FeedValidationError, match="stop_lon"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_invalid_row_reports_location(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            stop_times=STOP_TIMES.replace("08:03:00,08:03:00", "8h03,8h03", 1),
        )
        with pytest.raises(FeedValidationError, match=r"stop_times\.txt:3"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_route_without_any_name(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            routes="route_id,route_short_name,route_long_name,route_type\nM1,,,1\n",
        )
        with pytest.raises(FeedValidationError, match="routes.txt:2"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_trip_with_unknown_route(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(tmp_path / "gtfs", trips=TRIPS + "X_1,NOPE,WD,Nowhere,0\n")
        with pytest.raises(FeedValidationError, match="unknown route NOPE"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_duplicate_stop_sequence(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            stop_times=STOP_TIMES + "M1_WD_1,08:31:00,08:31:00,metro_basmane,4\n",
        )
        with pytest.raises(FeedValidationError, match="duplicate stop_sequence 4"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_calendar_window_must_be_ordered(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            calendar=(
                "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,"
                "start_date,end_date\n"
                "WD,1,1,1,1,1,0,0,20241231,20240101\n"
            ),
        )
        with pytest.raises(FeedValidationError, match="calendar.txt:2"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    async def test_empty_required_table(self, tmp_path: Path) -> None:
        gtfs_dir = write_feed(
            tmp_path / "gtfs",
            stop_times="trip_id,arrival_time,departure_time,stop_id,stop_sequence\n",
        )
        with pytest.raises(FeedValidationError, match="No stop_times loaded"):
            await GTFSLoader(tmp_path / "test.db").ingest(gtfs_dir)

    def test_feed_validation_error_is_value_error(self) -> None:
        assert issubclass(FeedValidationError, ValueError)
