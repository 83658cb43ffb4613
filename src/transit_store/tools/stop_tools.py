"""MCP tools for searching stops and routes."""

from transit_store.app import mcp
from transit_store.models.responses import (
    SearchRoutesResponse,
    SearchStopsResponse,
    StopRoutesResponse,
)
from transit_store.store import TransitStore


@mcp.tool()
async def search_stops(query: str) -> SearchStopsResponse:
    """Search for transit stops by name.

    Matching ignores case and accents and understands Turkish letters, so
    "cigli" finds "Çiğli" and "konak iskelesi" finds "Konak İskele". Stops
    sharing a name are listed once.

    If nothing matches, `suggestions` holds the closest names by fuzzy
    score (useful for typos such as "Konakk").

    Args:
        query: Part of a stop name (at least 2 characters).

    Returns:
        SearchStopsResponse with matching stops sorted by name.
    """
    async with TransitStore.open() as store:
        stops = await store.search_stops(query)
        suggestions = [] if stops else await store.suggest_stops(query)
    return SearchStopsResponse(stops=stops, count=len(stops), suggestions=suggestions)


@mcp.tool()
async def search_routes(query: str) -> SearchRoutesResponse:
    """Search for routes by line number or name.

    Examples:
        search_routes(query="M1")     # Metro line
        search_routes(query="5")      # Line 5, 15, 50 ...
        search_routes(query="Evka")   # Routes whose long name mentions Evka

    Args:
        query: Part of the route short or long name.

    Returns:
        SearchRoutesResponse with routes sorted by line number.
    """
    async with TransitStore.open() as store:
        routes = await store.search_routes(query)
    return SearchRoutesResponse(routes=routes, count=len(routes))


@mcp.tool()
async def get_stop_routes(stop_id: str, include_bus: bool = True) -> StopRoutesResponse:
    """List the routes serving a stop or station.

    Args:
        stop_id: Stop or station ID. Use search_stops() to find stop IDs.
        include_bus: Set to False to list rail, tram, metro and ferry routes only.

    Returns:
        StopRoutesResponse with the routes (empty for unknown stops).
    """
    async with TransitStore.open() as store:
        routes = await store.get_routes_by_stop_id(stop_id, include_bus=include_bus)
    return StopRoutesResponse(stop_id=stop_id, routes=routes, count=len(routes))
