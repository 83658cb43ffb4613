"""Tests for stop and route lookups."""

import logging

import aiosqlite
import pytest

from sample_feed import ROUTES, STOPS
from transit_store.data.database import get_db
from transit_store.services.recovery import IdPrefixRecovery
from transit_store.services.stop_service import (
    find_best_nearby_stops,
    find_nearby_stops,
    get_route_by_id,
    get_routes_by_stop_id,
    get_stop_and_child_ids,
    get_stop_by_id,
    get_stops_by_route_id,
    get_stops_in_bounds,
    haversine_distance,
    walking_minutes,
)


class TestHaversineDistance:
    """Tests for the haversine distance calculation."""

    def test_same_point_is_zero(self) -> None:
        assert haversine_distance(38.4189, 27.1287, 38.4189, 27.1287) == 0

    def test_known_distance(self) -> None:
        """Konak to Alsancak Gar is roughly 2.5 km."""
        distance = haversine_distance(38.4189, 27.1287, 38.4390, 27.1480)
        assert 2_500 < distance < 3_000

    def test_symmetric(self) -> None:
        d1 = haversine_distance(38.4189, 27.1287, 38.4193, 27.1283)
        d2 = haversine_distance(38.4193, 27.1283, 38.4189, 27.1287)
        assert d1 == pytest.approx(d2)


class TestWalkingMinutes:
    def test_rounds_up(self) -> None:
        assert walking_minutes(300) == 4
        assert walking_minutes(1) == 1

    def test_zero(self) -> None:
        assert walking_minutes(0) == 0

    def test_exact_minute(self) -> None:
        assert walking_minutes(5000) == 60


class TestGetById:
    async def test_stop_found(self, db: aiosqlite.Connection) -> None:
        stop = await get_stop_by_id(db, "ferry_konak")
        assert stop is not None
        assert stop.stop_name == "Konak İskelesi"
        assert stop.stop_lat == pytest.approx(38.4195)

    async def test_stop_not_found(self, db: aiosqlite.Connection) -> None:
        assert await get_stop_by_id(db, "NOPE") is None

    async def test_route_found(self, db: aiosqlite.Connection) -> None:
        route = await get_route_by_id(db, "M1")
        assert route is not None
        assert route.route_type == 1
        assert route.route_color == "D61C1F"

    async def test_route_not_found(self, db: aiosqlite.Connection) -> None:
        assert await get_route_by_id(db, "NOPE") is None

    async def test_station_children(self, db: aiosqlite.Connection) -> None:
        assert await get_stop_and_child_ids(db, "KONAK") == ["KONAK", "metro_konak"]
        assert await get_stop_and_child_ids(db, "tram_konak") == ["tram_konak"]


class TestGetRoutesByStopId:
    async def test_routes_from_stop_times(self, db: aiosqlite.Connection) -> None:
        routes = await get_routes_by_stop_id(db, "bus_bornova10")
        assert [route.route_id for route in routes] == ["B5", "B15"]

    async def test_station_includes_platforms(self, db: aiosqlite.Connection) -> None:
        routes = await get_routes_by_stop_id(db, "KONAK")
        assert [route.route_id for route in routes] == ["M1"]

    async def test_exclude_bus(self, db: aiosqlite.Connection) -> None:
        assert await get_routes_by_stop_id(db, "bus_bornova10", include_bus=False) == []

    async def test_unknown_stop(self, db: aiosqlite.Connection) -> None:
        assert await get_routes_by_stop_id(db, "NOPE") == []

    async def test_id_prefix_recovery(
        self, db: aiosqlite.Connection, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A pier without stop_times gets every ferry route."""
        with caplog.at_level(logging.INFO):
            routes = await get_routes_by_stop_id(db, "ferry_konak")

        assert [route.route_id for route in routes] == ["F1"]
        assert "id_prefix" in caplog.text

    async def test_name_keyword_recovery(self, db: aiosqlite.Connection) -> None:
        routes = await get_routes_by_stop_id(db, "IZD2")
        assert [route.route_id for route in routes] == ["F1"]

    async def test_recovery_respects_strategy_list(self, db: aiosqlite.Connection) -> None:
        routes = await get_routes_by_stop_id(db, "IZD2", strategies=[IdPrefixRecovery()])
        assert routes == []

    async def test_recovered_routes_respect_include_bus(self, ingest_feed) -> None:
        """A bus stop without stop_times recovers bus routes, which include_bus=False drops."""
        db_path = await ingest_feed(stops=STOPS + "bus_garaj,Garaj,38.4000,27.1000,0,\n")

        async with get_db(db_path) as db:
            recovered = await get_routes_by_stop_id(db, "bus_garaj")
            without_bus = await get_routes_by_stop_id(db, "bus_garaj", include_bus=False)
            ferry = await get_routes_by_stop_id(db, "ferry_konak", include_bus=False)

        assert [route.route_id for route in recovered] == ["B5", "B15"]
        assert without_bus == []
        assert [route.route_id for route in ferry] == ["F1"]


class TestGetStopsByRouteId:
    async def test_stops_in_sequence(self, db: aiosqlite.Connection) -> None:
        stops = await get_stops_by_route_id(db, "M1")
        assert [stop.stop_id for stop in stops] == [
            "metro_konak",
            "metro_cankaya",
            "metro_basmane",
            "metro_evka3",
        ]

    async def test_unknown_route(self, db: aiosqlite.Connection) -> None:
        assert await get_stops_by_route_id(db, "NOPE") == []

    async def test_recovery_by_route_name(self, db: aiosqlite.Connection) -> None:
        """The ferry route has no trips; its stops are inferred from the stop names and IDs."""
        stops = await get_stops_by_route_id(db, "F1")
        assert [stop.stop_id for stop in stops] == ["IZD2", "ferry_konak"]

    async def test_recovery_trusts_route_type(
        self, ingest_feed, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A ferry route whose ID and name carry no ferry hint."""
        db_path = await ingest_feed(routes=ROUTES + "X9,,Körfez Hattı,4,\n")

        async with get_db(db_path) as db:
            with caplog.at_level(logging.INFO):
                stops = await get_stops_by_route_id(db, "X9")

        assert [stop.stop_id for stop in stops] == ["IZD2", "ferry_konak"]
        assert "route_type" in caplog.text


class TestGetStopsInBounds:
    async def test_box(self, db: aiosqlite.Connection) -> None:
        stops = await get_stops_in_bounds(db, 38.4180, 27.1280, 38.4190, 27.1295)
        assert [stop.stop_id for stop in stops] == ["KONAK", "bus_konak", "metro_konak"]

    async def test_empty_box(self, db: aiosqlite.Connection) -> None:
        assert await get_stops_in_bounds(db, 0, 0, 1, 1) == []


class TestFindNearbyStops:
    async def test_sorted_by_distance(self, db: aiosqlite.Connection) -> None:
        stops = await find_nearby_stops(db, 38.4189, 27.1287, radius_meters=100)

        assert stops[0].stop_id == "metro_konak"
        assert stops[0].distance_meters == 0
        assert {stop.stop_id for stop in stops} == {"metro_konak", "tram_konak", "bus_konak"}
        distances = [stop.distance_meters for stop in stops]
        assert distances == sorted(distances)

    async def test_stations_skipped(self, db: aiosqlite.Connection) -> None:
        stops = await find_nearby_stops(db, 38.4189, 27.1287, radius_meters=100)
        assert "KONAK" not in {stop.stop_id for stop in stops}

    async def test_limit(self, db: aiosqlite.Connection) -> None:
        stops = await find_nearby_stops(db, 38.4189, 27.1287, radius_meters=300, limit=2)
        assert len(stops) == 2

    async def test_nothing_nearby(self, db: aiosqlite.Connection) -> None:
        assert await find_nearby_stops(db, 40.0, 30.0) == []


class TestFindBestNearbyStops:
    async def test_one_stop_per_station(self, db: aiosqlite.Connection) -> None:
        """Metro, tram and pier platforms at Konak share a base name; the closest wins."""
        stops = await find_best_nearby_stops(db, 38.4189, 27.1287, radius_meters=300)
        assert [stop.stop_id for stop in stops] == ["metro_konak", "bus_konak"]

    async def test_count(self, db: aiosqlite.Connection) -> None:
        stops = await find_best_nearby_stops(db, 38.4189, 27.1287, count=1)
        assert [stop.stop_id for stop in stops] == ["metro_konak"]
