"""Query interface over an open GTFS store connection."""

from collections.abc import AsyncIterator, Collection, Sequence
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path

import aiosqlite

from transit_store.data import storage
from transit_store.data.config import StoreSettings, get_settings
from transit_store.data.database import get_db
from transit_store.matching import search
from transit_store.models.gtfs import Route, Stop
from transit_store.models.responses import (
    Departure,
    NearbyStop,
    RouteDeparture,
    StopSuggestion,
    TransferPoint,
)
from transit_store.services import (
    calendar_service,
    schedule_service,
    stop_service,
    transfer_service,
)
from transit_store.services.calendar_service import ServiceFilter
from transit_store.services.recovery import DEFAULT_RECOVERY_STRATEGIES, RecoveryStrategy


class TransitStore:
    """Read-only queries against a GTFS store.

    The connection is owned by the caller; use ``TransitStore.open`` to get
    one bound to a database file for the duration of a block.

    Example:
        async with TransitStore.open(Path("data/transit.db")) as store:
            departures = await store.get_next_departures("metro_konak")
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        settings: StoreSettings | None = None,
        recovery_strategies: Sequence[RecoveryStrategy] = DEFAULT_RECOVERY_STRATEGIES,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.recovery_strategies = recovery_strategies

    @classmethod
    @asynccontextmanager
    async def open(
        cls, db_path: Path | None = None, settings: StoreSettings | None = None
    ) -> AsyncIterator["TransitStore"]:
        """Open the database (default: TRANSIT_DB_PATH) and yield a store on it."""
        settings = settings or get_settings()
        async with get_db(db_path or settings.db_path) as db:
            yield cls(db, settings)

    # Lookups

    async def get_stop_by_id(self, stop_id: str) -> Stop | None:
        return await stop_service.get_stop_by_id(self.db, stop_id)

    async def get_route_by_id(self, route_id: str) -> Route | None:
        return await stop_service.get_route_by_id(self.db, route_id)

    async def get_routes_by_stop_id(self, stop_id: str, include_bus: bool = True) -> list[Route]:
        return await stop_service.get_routes_by_stop_id(
            self.db, stop_id, include_bus, self.recovery_strategies
        )

    async def get_stops_by_route_id(self, route_id: str) -> list[Stop]:
        return await stop_service.get_stops_by_route_id(
            self.db, route_id, self.recovery_strategies
        )

    async def get_stops_in_bounds(
        self, min_lat: float, min_lon: float, max_lat: float, max_lon: float
    ) -> list[Stop]:
        return await stop_service.get_stops_in_bounds(self.db, min_lat, min_lon, max_lat, max_lon)

    async def find_nearby_stops(
        self, lat: float, lon: float, radius_meters: float = 500, limit: int = 10
    ) -> list[NearbyStop]:
        return await stop_service.find_nearby_stops(self.db, lat, lon, radius_meters, limit)

    async def find_best_nearby_stops(
        self, lat: float, lon: float, count: int = 5, radius_meters: float = 800
    ) -> list[NearbyStop]:
        return await stop_service.find_best_nearby_stops(self.db, lat, lon, count, radius_meters)

    # Search

    async def search_stops(self, query: str) -> list[Stop]:
        return await search.search_stops(
            self.db,
            query,
            self.settings.search_candidate_limit,
            self.settings.search_result_limit,
        )

    async def search_routes(self, query: str) -> list[Route]:
        return await search.search_routes(
            self.db,
            query,
            self.settings.search_candidate_limit,
            self.settings.search_result_limit,
        )

    async def suggest_stops(
        self, query: str, limit: int = search.SUGGESTION_LIMIT
    ) -> list[StopSuggestion]:
        return await search.suggest_stops(self.db, query, limit)

    # Calendar and schedule

    async def resolve_service_filter(self, query_date: date) -> ServiceFilter:
        return await calendar_service.resolve_service_filter(self.db, query_date)

    async def get_active_service_ids(self, query_date: date) -> set[str] | None:
        return await calendar_service.get_active_service_ids(self.db, query_date)

    async def get_next_departures(
        self,
        stop_id: str,
        limit: int = schedule_service.DEFAULT_DEPARTURE_LIMIT,
        now: datetime | None = None,
    ) -> list[Departure]:
        return await schedule_service.get_next_departures(self.db, stop_id, limit, now)

    async def find_next_departure_on_route(
        self,
        route_id: str,
        from_stop_id: str,
        to_stop_id: str,
        after_time: str,
        active_services: Collection[str] | None = None,
    ) -> RouteDeparture | None:
        return await schedule_service.find_next_departure_on_route(
            self.db, route_id, from_stop_id, to_stop_id, after_time, active_services
        )

    async def get_actual_travel_time(
        self, route_id: str, from_stop_id: str, to_stop_id: str
    ) -> float | None:
        return await schedule_service.get_actual_travel_time(
            self.db, route_id, from_stop_id, to_stop_id
        )

    # Transfers

    async def find_transfer_stops(
        self,
        from_route_ids: Sequence[str],
        to_route_ids: Sequence[str],
        limit: int | None = None,
    ) -> list[TransferPoint]:
        return await transfer_service.find_transfer_stops(
            self.db,
            from_route_ids,
            to_route_ids,
            limit if limit is not None else self.settings.transfer_limit,
            self.settings.transfer_radius_meters,
            self.settings.transfer_cell_size,
        )

    # Maintenance

    async def get_table_counts(self) -> dict[str, int]:
        return await storage.get_table_counts(self.db)
