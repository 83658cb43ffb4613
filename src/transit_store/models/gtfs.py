"""Pydantic models for GTFS entities."""

from enum import IntEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from transit_store.data.gtfs_time import GTFS_DATE_PATTERN, normalize_gtfs_time


class RouteType(IntEnum):
    """GTFS route_type values used by the store."""

    TRAM = 0
    METRO = 1
    RAIL = 2
    BUS = 3
    FERRY = 4


class ExceptionType(IntEnum):
    """calendar_dates exception_type."""

    ADDED = 1
    REMOVED = 2


def _validate_gtfs_date(value: str) -> str:
    if not GTFS_DATE_PATTERN.match(value):
        raise ValueError(f"Invalid GTFS date format (must be YYYYMMDD): {value!r}")
    return value


class Stop(BaseModel):
    """GTFS stop entity."""

    stop_id: str = Field(min_length=1)
    stop_name: str = Field(min_length=1)
    stop_lat: float = Field(ge=-90, le=90)
    stop_lon: float = Field(ge=-180, le=180)
    location_type: int = Field(default=0, ge=0, le=4)  # 0=stop, 1=station
    parent_station: str | None = None


class Route(BaseModel):
    """GTFS route entity."""

    route_id: str = Field(min_length=1)
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_type: int = Field(ge=0, le=12)  # 0=tram, 1=metro, 2=rail, 3=bus, 4=ferry
    route_color: str | None = Field(default=None, pattern=r"^[0-9A-Fa-f]{6}$")
    route_text_color: str | None = Field(default=None, pattern=r"^[0-9A-Fa-f]{6}$")

    @model_validator(mode="after")
    def _require_a_name(self) -> "Route":
        if not self.route_short_name and not self.route_long_name:
            raise ValueError("Either route_short_name or route_long_name must be provided")
        return self


class Trip(BaseModel):
    """GTFS trip entity."""

    trip_id: str = Field(min_length=1)
    route_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    trip_headsign: str | None = None
    direction_id: int = Field(default=0, ge=0, le=1)
    shape_id: str | None = None


class StopTime(BaseModel):
    """GTFS stop_times entity."""

    trip_id: str = Field(min_length=1)
    arrival_time: str  # HH:MM:SS (can exceed 24:00:00)
    departure_time: str
    stop_id: str = Field(min_length=1)
    stop_sequence: int = Field(ge=0)

    @field_validator("arrival_time", "departure_time")
    @classmethod
    def _pad_time(cls, value: str) -> str:
        return normalize_gtfs_time(value)


class Calendar(BaseModel):
    """GTFS calendar entity for weekly service patterns."""

    service_id: str = Field(min_length=1)
    monday: bool
    tuesday: bool
    wednesday: bool
    thursday: bool
    friday: bool
    saturday: bool
    sunday: bool
    start_date: str  # YYYYMMDD
    end_date: str  # YYYYMMDD

    @field_validator("start_date", "end_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _validate_gtfs_date(value)

    @model_validator(mode="after")
    def _check_window(self) -> "Calendar":
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )
        return self


class CalendarDate(BaseModel):
    """GTFS calendar_dates entity for service exceptions."""

    service_id: str = Field(min_length=1)
    date: str  # YYYYMMDD
    exception_type: int = Field(ge=1, le=2)  # see ExceptionType

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _validate_gtfs_date(value)


class ShapePoint(BaseModel):
    """GTFS shapes entity (one polyline point)."""

    shape_id: str = Field(min_length=1)
    shape_pt_lat: float = Field(ge=-90, le=90)
    shape_pt_lon: float = Field(ge=-180, le=180)
    shape_pt_sequence: int = Field(ge=0)
