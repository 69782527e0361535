from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ev_route_planner.services.cities import KNOWN_CITIES


class Coordinate(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class RoutePlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: Coordinate | str
    finish: Coordinate | str
    max_detour_km: float | None = Field(default=None, gt=0.0, le=200.0)
    max_stops: int | None = Field(default=None, ge=0, le=10)
    optimize: bool = False
    city: str | None = None

    @field_validator("start", "finish")
    @classmethod
    def _validate_location_text(cls, value: Coordinate | str) -> Coordinate | str:
        if isinstance(value, str):
            value = value.strip()
            if not 3 <= len(value) <= 300:
                raise ValueError("Location text must be between 3 and 300 characters")
        return value

    @field_validator("city")
    @classmethod
    def _validate_city(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in KNOWN_CITIES:
            raise ValueError(f"Unknown city, expected one of: {', '.join(sorted(KNOWN_CITIES))}")
        return normalized


class ChargingStopResponse(BaseModel):
    station_id: str
    name: str
    address: str
    provider: str
    latitude: float
    longitude: float
    available_points: int
    total_points: int
    power_kw: float
    price_per_kwh: float
    rating: float | None
    amenities: list[str]
    distance_from_path_km: float


class RouteSummaryResponse(BaseModel):
    distance_km: float
    duration_minutes: float
    stop_count: int


class RoutePlanResponse(BaseModel):
    start: Coordinate
    finish: Coordinate
    route_type: Literal["direct", "optimized"]
    path: list[Coordinate]
    route_geojson: dict
    stops: list[ChargingStopResponse]
    summary: RouteSummaryResponse
    assumptions: dict[str, float]
