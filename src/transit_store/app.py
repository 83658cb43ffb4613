"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "Transit Store",
    instructions=(
        "Offline GTFS schedule store - stop and route search, next departures, "
        "active services and transfer points"
    ),
)
