from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Configuration for the transit store.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    db_path: Path = Field(default=Path("data/transit.db"), alias="TRANSIT_DB_PATH")

    # bulk insert
    chunk_size: int = Field(default=10_000, alias="TRANSIT_CHUNK_SIZE")

    # search
    search_candidate_limit: int = Field(default=200, alias="TRANSIT_SEARCH_CANDIDATE_LIMIT")
    search_result_limit: int = Field(default=50, alias="TRANSIT_SEARCH_RESULT_LIMIT")

    # transfer finder
    transfer_radius_meters: float = Field(default=300.0, alias="TRANSIT_TRANSFER_RADIUS_METERS")
    transfer_cell_size: float = Field(default=0.003, alias="TRANSIT_TRANSFER_CELL_SIZE")
    transfer_limit: int = Field(default=10, alias="TRANSIT_TRANSFER_LIMIT")


@lru_cache
def get_settings() -> StoreSettings:
    """Get store configuration (cached singleton).

    Returns:
        StoreSettings with values from .env file or environment variables.
    """
    return StoreSettings()
