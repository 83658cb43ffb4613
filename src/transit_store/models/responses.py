from enum import Enum

from pydantic import BaseModel, Field

from transit_store.models.gtfs import Route, Stop


class CalendarState(str, Enum):
    """Outcome of resolving active services for a date.

    - NO_CALENDAR_DATA: feed has neither calendar nor calendar_dates rows
    - ACTIVE: the resolved service set restricts queries
    - EXPIRED_FALLBACK: calendar data exists but nothing is active (e.g. the
      feed validity window ended), so queries are not restricted
    """

    NO_CALENDAR_DATA = "no_calendar_data"
    ACTIVE = "active"
    EXPIRED_FALLBACK = "expired_fallback"


class TransferMatch(str, Enum):
    """How a transfer pair was found."""

    NAME = "name"  # same official station name
    PROXIMITY = "proximity"  # within walking radius


class NearbyStop(Stop):
    distance_meters: float = Field(description="Distance from search coordinates")


class StopSuggestion(BaseModel):
    """A fuzzy-matched stop with its score."""

    stop: Stop
    score: float = Field(description="Match score (0-100)")


class Departure(BaseModel):
    trip_id: str
    route_id: str
    route_short_name: str | None = Field(default=None, description="Line number or name")
    route_long_name: str | None = None
    route_type: int | None = Field(default=None, description="0=tram, 1=metro, 2=rail, 3=bus, 4=ferry")
    route_color: str | None = None
    trip_headsign: str | None = Field(default=None, description="Destination displayed on vehicle")
    departure_time: str = Field(description="Scheduled departure in HH:MM:SS format")
    minutes_until: int = Field(description="Minutes until departure from query time")


class RouteDeparture(BaseModel):
    """Earliest trip on a route between two stops."""

    trip_id: str
    departure_time: str = Field(description="Departure from origin in HH:MM:SS format")
    arrival_time: str = Field(description="Arrival at destination in HH:MM:SS format")
    departure_minutes: float = Field(description="Departure as minutes since midnight")
    arrival_minutes: float = Field(description="Arrival as minutes since midnight")


class TransferPoint(BaseModel):
    """A stop pair where a rider can change from one route to another."""

    from_route_id: str
    to_route_id: str
    from_stop_id: str
    from_stop_name: str
    from_lat: float
    from_lon: float
    to_stop_id: str
    to_stop_name: str
    to_lat: float
    to_lon: float
    walk_distance_meters: float = Field(description="Great-circle walking distance")
    walk_minutes: int = Field(description="Walking time at 5 km/h, rounded up")
    match_type: TransferMatch


class SearchStopsResponse(BaseModel):
    stops: list[Stop]
    count: int = Field(description="Number of stops returned")
    suggestions: list[StopSuggestion] = Field(
        default_factory=list, description="Fuzzy matches, filled only when no stop matched"
    )


class SearchRoutesResponse(BaseModel):
    routes: list[Route]
    count: int = Field(description="Number of routes returned")


class StopRoutesResponse(BaseModel):
    stop_id: str
    routes: list[Route]
    count: int = Field(description="Number of routes returned")


class NextDeparturesResponse(BaseModel):
    stop: Stop | None = Field(default=None, description="Stop info, None if unknown")
    departures: list[Departure]
    count: int = Field(description="Number of departures returned")


class ActiveServicesResponse(BaseModel):
    date: str = Field(description="Service date in YYYYMMDD format")
    calendar_state: CalendarState
    service_ids: list[str] = Field(description="Active service IDs (empty when not filtered)")
    filtered: bool = Field(description="False when every trip is treated as active")


class FindTransfersResponse(BaseModel):
    transfers: list[TransferPoint]
    count: int = Field(description="Number of transfer points returned")
