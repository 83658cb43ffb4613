"""Locale-aware stop and route search.

Search runs in two passes. A cheap SQL ``LIKE`` prefilter pulls a bounded
set of candidates, then the candidates are refined, deduplicated and sorted
in memory using the normalized names. SQLite's ``LIKE`` only folds ASCII
case, so the prefilter also matches against the folded and normalized
name columns written at import time (``stop_name_folded``,
``stop_name_normalized``, ``route_*_name_normalized``).
"""

import logging

import aiosqlite
from rapidfuzz import fuzz

from transit_store.data.database import (
    ROUTE_COLUMNS,
    STOP_COLUMNS,
    route_from_row,
    stop_from_row,
)
from transit_store.matching.normalizers import (
    fold_text,
    natural_sort_key,
    normalize_stop_name,
)
from transit_store.models.gtfs import Route, Stop
from transit_store.models.responses import StopSuggestion

logger = logging.getLogger(__name__)

MIN_STOP_QUERY_LENGTH = 2
MIN_ROUTE_QUERY_LENGTH = 1
CANDIDATE_LIMIT = 200
RESULT_LIMIT = 50

# Fuzzy suggestions
SUGGESTION_LIMIT = 5
SUGGESTION_MIN_SCORE = 70.0


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with wildcard characters escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def search_stops(
    db: aiosqlite.Connection,
    query: str,
    candidate_limit: int = CANDIDATE_LIMIT,
    limit: int = RESULT_LIMIT,
) -> list[Stop]:
    """Search stops by name.

    Matching is accent-insensitive and Turkish-aware: "cigli" finds
    "Çiğli", and "Konak İskelesi" finds "Konak İskele". Results with the
    same normalized name collapse to one entry, and the list is sorted
    with numbers in numeric order.

    Args:
        db: Database connection.
        query: Text to search for. Queries shorter than 2 characters
               (after trimming) return no results.
        candidate_limit: Maximum rows fetched by the SQL prefilter.
        limit: Maximum number of results.

    Returns:
        Matching stops.
    """
    query = query.strip()
    if len(query) < MIN_STOP_QUERY_LENGTH:
        return []

    normalized_query = normalize_stop_name(query)
    folded_query = fold_text(query)
    sql = f"""
        SELECT {STOP_COLUMNS}
        FROM stops
        WHERE stop_name LIKE ? ESCAPE '\\'
           OR stop_name_normalized LIKE ? ESCAPE '\\'
           OR stop_name_folded LIKE ? ESCAPE '\\'
        ORDER BY stop_id
        LIMIT ?
    """
    params = (
        _like_pattern(query),
        _like_pattern(normalized_query),
        _like_pattern(folded_query),
        candidate_limit,
    )
    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    seen: set[str] = set()
    stops: list[Stop] = []
    for row in rows:
        normalized_name = normalize_stop_name(row["stop_name"])
        if normalized_name in seen:
            continue
        # A partly typed word ("iskeles") only matches before suffix rewriting
        if (
            normalized_query not in normalized_name
            and folded_query not in fold_text(row["stop_name"])
        ):
            continue
        seen.add(normalized_name)
        stops.append(stop_from_row(row))

    logger.debug(f"search_stops({query!r}): {len(rows)} candidates, {len(stops)} unique matches")

    stops.sort(key=lambda stop: natural_sort_key(stop.stop_name))
    return stops[:limit]


def route_sort_key(route: Route) -> tuple:
    """Sort routes by short name, then long name, numbers in numeric order."""
    return (natural_sort_key(route.route_short_name), natural_sort_key(route.route_long_name))


async def search_routes(
    db: aiosqlite.Connection,
    query: str,
    candidate_limit: int = CANDIDATE_LIMIT,
    limit: int = RESULT_LIMIT,
) -> list[Route]:
    """Search routes by short or long name.

    A single character is a valid query since many lines are numbered
    ("5" finds line 5 and line 15).

    Args:
        db: Database connection.
        query: Text to search for in route short or long names.
        candidate_limit: Maximum rows fetched by the SQL prefilter.
        limit: Maximum number of results.

    Returns:
        Matching routes sorted by short name, then long name.
    """
    query = query.strip()
    if len(query) < MIN_ROUTE_QUERY_LENGTH:
        return []

    normalized_query = normalize_stop_name(query)
    sql = f"""
        SELECT {ROUTE_COLUMNS}
        FROM routes
        WHERE route_short_name LIKE ? ESCAPE '\\'
           OR route_long_name LIKE ? ESCAPE '\\'
           OR route_short_name_normalized LIKE ? ESCAPE '\\'
           OR route_long_name_normalized LIKE ? ESCAPE '\\'
        ORDER BY route_id
        LIMIT ?
    """
    raw_pattern = _like_pattern(query)
    normalized_pattern = _like_pattern(normalized_query)
    params = (raw_pattern, raw_pattern, normalized_pattern, normalized_pattern, candidate_limit)
    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    seen: set[tuple[str, str]] = set()
    routes: list[Route] = []
    for row in rows:
        short_name = normalize_stop_name(row["route_short_name"] or "")
        long_name = normalize_stop_name(row["route_long_name"] or "")
        if normalized_query not in short_name and normalized_query not in long_name:
            continue
        key = (short_name, long_name)
        if key in seen:
            continue
        seen.add(key)
        routes.append(route_from_row(row))

    routes.sort(key=route_sort_key)
    return routes[:limit]


def _fuzzy_score(query_normalized: str, target_normalized: str) -> float:
    """Blend token_set_ratio (word order) with partial_ratio (substrings)."""
    token_score = fuzz.token_set_ratio(query_normalized, target_normalized)
    partial_score = fuzz.partial_ratio(query_normalized, target_normalized)
    return token_score * 0.7 + partial_score * 0.3


async def suggest_stops(
    db: aiosqlite.Connection,
    query: str,
    limit: int = SUGGESTION_LIMIT,
    min_score: float = SUGGESTION_MIN_SCORE,
) -> list[StopSuggestion]:
    """Suggest stops for a possibly misspelled query.

    Used when substring search finds nothing, e.g. "Konakk" or
    "bornva". Every stop name is scored, so this is slower than
    search_stops.

    Args:
        db: Database connection.
        query: Free-text stop name.
        limit: Maximum number of suggestions.
        min_score: Minimum fuzzy score (0-100) to keep a suggestion.

    Returns:
        Suggestions ordered by descending score.
    """
    query = query.strip()
    if len(query) < MIN_STOP_QUERY_LENGTH:
        return []

    normalized_query = normalize_stop_name(query)
    async with db.execute(f"SELECT {STOP_COLUMNS} FROM stops ORDER BY stop_id") as cursor:
        rows = await cursor.fetchall()

    best: dict[str, StopSuggestion] = {}
    for row in rows:
        normalized_name = normalize_stop_name(row["stop_name"])
        score = _fuzzy_score(normalized_query, normalized_name)
        if score < min_score:
            continue
        current = best.get(normalized_name)
        if current is None or score > current.score:
            best[normalized_name] = StopSuggestion(stop=stop_from_row(row), score=round(score, 1))

    suggestions = sorted(
        best.values(),
        key=lambda s: (-s.score, natural_sort_key(s.stop.stop_name)),
    )
    return suggestions[:limit]
