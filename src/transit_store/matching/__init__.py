"""Name normalization and search for stops and routes."""

from transit_store.matching.normalizers import (
    base_station_name,
    contains_keyword,
    fold_text,
    natural_sort_key,
    normalize_stop_name,
    remove_accents,
)
from transit_store.matching.search import search_routes, search_stops, suggest_stops

__all__ = [
    # Search
    "search_stops",
    "search_routes",
    "suggest_stops",
    # Normalizers
    "fold_text",
    "remove_accents",
    "normalize_stop_name",
    "base_station_name",
    "natural_sort_key",
    "contains_keyword",
]
