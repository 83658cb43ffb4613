from transit_store.app import mcp
from transit_store.models.responses import FindTransfersResponse
from transit_store.store import TransitStore


@mcp.tool()
async def find_transfers(
    from_route_ids: list[str],
    to_route_ids: list[str],
    limit: int = 10,
) -> FindTransfersResponse:
    """Find stops where riders can change from one set of routes to another.

    Stops sharing an official station name are matched first, then stops
    within a short walk (300 m by default).

    Examples:
        find_transfers(from_route_ids=["M1"], to_route_ids=["T1"])

    Args:
        from_route_ids: Route IDs the rider is currently on.
        to_route_ids: Route IDs the rider wants to reach.
        limit: Maximum transfer points (1-50, default 10).

    Returns:
        FindTransfersResponse with transfer points and walking distances.
    """
    # Clamp limit
    if limit < 1:
        limit = 1
    elif limit > 50:
        limit = 50

    async with TransitStore.open() as store:
        transfers = await store.find_transfer_stops(from_route_ids, to_route_ids, limit)
    return FindTransfersResponse(transfers=transfers, count=len(transfers))
