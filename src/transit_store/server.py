import argparse
import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from transit_store.app import mcp
from transit_store.data.config import get_settings

# Registers the query tools on `mcp`
from transit_store.tools import schedule_tools, stop_tools, transfer_tools  # noqa: F401


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@mcp.tool()
def health() -> HealthResponse:
    """Check if the transit store server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from transit_store import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


async def run_ingest(gtfs_path: Path, db_path: Path, chunk_size: int) -> None:
    """Run GTFS ingestion."""
    from transit_store.data.gtfs_loader import GTFSLoader

    loader = GTFSLoader(db_path, chunk_size=chunk_size)
    row_counts = await loader.ingest(gtfs_path)

    print("\nIngestion complete. Row counts:")
    for table, count in row_counts.items():
        print(f"  {table}: {count:,}")


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="transit-store",
        description="Offline GTFS schedule store and MCP server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest a GTFS feed into the SQLite store",
    )
    ingest_parser.add_argument(
        "gtfs_path",
        type=Path,
        help="Path to GTFS directory or ZIP file",
    )
    ingest_parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help="SQLite database path (default: data/transit.db or TRANSIT_DB_PATH env var)",
    )
    ingest_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.command == "ingest":
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        asyncio.run(run_ingest(args.gtfs_path, args.db, settings.chunk_size))
    else:
        # Default: run MCP server (stdio transport, nothing else may write to stdout)
        mcp.run()


if __name__ == "__main__":
    main()
