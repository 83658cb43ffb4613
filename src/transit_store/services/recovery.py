"""Recovery strategies for feeds with missing stop_times links.

Some feeds ship stops and routes for a mode (typically ferries or a metro
line) without the stop_times that connect them. When a lookup through
stop_times comes back empty, the strategies below try to infer the
transit mode of the stop or route from what is left: its ID prefix or its
name. A route's own route_type is trusted before any guess. The caller
then falls back to every route or stop of that mode.

Strategies run in order and the first one that infers a mode wins.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from transit_store.matching.normalizers import contains_keyword
from transit_store.models.gtfs import RouteType


class TransitMode(str, Enum):
    TRAM = "tram"
    METRO = "metro"
    RAIL = "rail"
    BUS = "bus"
    FERRY = "ferry"

    @property
    def route_type(self) -> RouteType:
        return RouteType[self.name]

    @classmethod
    def from_route_type(cls, route_type: int) -> "TransitMode | None":
        """Mode for a GTFS route_type, or None for types outside the store's modes."""
        for mode in cls:
            if mode.route_type == route_type:
                return mode
        return None


class RecoveryKind(str, Enum):
    """Tag identifying which heuristic inferred the mode."""

    ROUTE_TYPE = "route_type"
    ID_PREFIX = "id_prefix"
    NAME_KEYWORD = "name_keyword"


# Soft ID convention: "metro_12", "ferry_konak"
MODE_PREFIXES: dict[str, TransitMode] = {
    "metro_": TransitMode.METRO,
    "tram_": TransitMode.TRAM,
    "bus_": TransitMode.BUS,
    "rail_": TransitMode.RAIL,
    "ferry_": TransitMode.FERRY,
}

FERRY_KEYWORDS = ("vapur", "feribot", "ferry", "izdeniz", "iskele")


class RecoveryStrategy(Protocol):
    kind: RecoveryKind

    def infer_mode(self, entity_id: str, name: str | None) -> TransitMode | None: ...


@dataclass(frozen=True)
class IdPrefixRecovery:
    """Infer the mode from a conventional ID prefix."""

    prefixes: dict[str, TransitMode] = field(default_factory=lambda: dict(MODE_PREFIXES))
    kind: RecoveryKind = RecoveryKind.ID_PREFIX

    def infer_mode(self, entity_id: str, name: str | None) -> TransitMode | None:
        lowered = entity_id.lower()
        for prefix, mode in self.prefixes.items():
            if lowered.startswith(prefix):
                return mode
        return None


@dataclass(frozen=True)
class NameKeywordRecovery:
    """Infer the mode from keywords in the stop or route name."""

    mode: TransitMode = TransitMode.FERRY
    keywords: tuple[str, ...] = FERRY_KEYWORDS
    kind: RecoveryKind = RecoveryKind.NAME_KEYWORD

    def infer_mode(self, entity_id: str, name: str | None) -> TransitMode | None:
        if name and contains_keyword(name, self.keywords):
            return self.mode
        return None


DEFAULT_RECOVERY_STRATEGIES: tuple[RecoveryStrategy, ...] = (
    IdPrefixRecovery(),
    NameKeywordRecovery(),
)


def infer_mode(
    entity_id: str,
    name: str | None,
    strategies: Sequence[RecoveryStrategy] = DEFAULT_RECOVERY_STRATEGIES,
) -> tuple[TransitMode, RecoveryKind] | None:
    """Run strategies in order and return the first inferred mode with its tag."""
    for strategy in strategies:
        mode = strategy.infer_mode(entity_id, name)
        if mode is not None:
            return mode, strategy.kind
    return None
