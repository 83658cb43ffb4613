from datetime import date, datetime

from transit_store.app import mcp
from transit_store.data.gtfs_time import date_to_gtfs_format
from transit_store.models.responses import ActiveServicesResponse, NextDeparturesResponse
from transit_store.store import TransitStore


@mcp.tool()
async def get_next_departures(stop_id: str, limit: int = 10) -> NextDeparturesResponse:
    """Get the next scheduled departures from a stop.

    Based on the static GTFS schedule for today's active services. If the
    stop is a station, departures from all of its platforms are included.

    Args:
        stop_id: Stop or station ID (required). Use search_stops() to find IDs.
        limit: Maximum number of departures to return (default 10, max 100).

    Returns:
        NextDeparturesResponse containing:
        - stop: Basic stop information (None if the stop is unknown)
        - departures: Upcoming departures with route, headsign and minutes until
        - count: Number of departures returned
    """
    # Validate limit
    if limit < 1:
        limit = 1
    elif limit > 100:
        limit = 100

    async with TransitStore.open() as store:
        stop = await store.get_stop_by_id(stop_id)
        departures = await store.get_next_departures(stop_id, limit) if stop else []
    return NextDeparturesResponse(stop=stop, departures=departures, count=len(departures))


@mcp.tool()
async def get_active_services(service_date: str | None = None) -> ActiveServicesResponse:
    """List the service IDs running on a date.

    When the feed has no calendar, or its calendar has nothing for the
    date (typically an expired feed), `filtered` is False and every trip
    is treated as running.

    Args:
        service_date: Date in YYYYMMDD format (default: today).

    Returns:
        ActiveServicesResponse with the calendar state and service IDs.

    Raises:
        ValueError: If service_date is not a valid YYYYMMDD date.
    """
    query_date = (
        datetime.strptime(service_date, "%Y%m%d").date() if service_date else date.today()
    )

    async with TransitStore.open() as store:
        service_filter = await store.resolve_service_filter(query_date)

    return ActiveServicesResponse(
        date=date_to_gtfs_format(query_date),
        calendar_state=service_filter.state,
        service_ids=sorted(service_filter.service_ids),
        filtered=service_filter.restricts,
    )
