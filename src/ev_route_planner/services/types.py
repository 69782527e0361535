from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass(slots=True, frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class CityBounds:
    north: float
    south: float
    east: float
    west: float


@dataclass(slots=True, frozen=True)
class GeocodeResult:
    point: GeoPoint
    label: str
    country_code: str


@dataclass(slots=True, frozen=True)
class RoadLeg:
    distance_km: float
    duration_minutes: float
    polyline: tuple[GeoPoint, ...] | None = None

    def reversed(self) -> RoadLeg:
        polyline = tuple(reversed(self.polyline)) if self.polyline is not None else None
        return RoadLeg(
            distance_km=self.distance_km,
            duration_minutes=self.duration_minutes,
            polyline=polyline,
        )


@dataclass(slots=True, frozen=True)
class ChargingStop:
    station_id: str
    name: str
    address: str
    point: GeoPoint
    total_points: int
    available_points: int
    power_kw: float
    price_per_kwh: float
    provider: str = ""
    rating: float | None = None
    amenities: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CandidateStop:
    """A stop considered for one start/end pair, with its distance from the direct path."""

    stop: ChargingStop
    distance_from_path_km: float

    @property
    def station_id(self) -> str:
        return self.stop.station_id

    @property
    def point(self) -> GeoPoint:
        return self.stop.point


@dataclass(slots=True, frozen=True)
class RouteRequest:
    start: GeoPoint
    end: GeoPoint
    max_detour_km: float = 30.0
    max_stops: int = 5
    optimize: bool = False
    city_bounds: CityBounds | None = None


@dataclass(slots=True)
class SearchNode:
    point: GeoPoint
    parent: int | None
    g: float
    h: float
    f: float
    candidate: CandidateStop | None = None
    road_distance_km: float = 0.0
    road_duration_minutes: float = 0.0


@dataclass(slots=True, frozen=True)
class OptimizedRoute:
    path: list[GeoPoint]
    road_path: list[GeoPoint]
    stops: list[CandidateStop]
    total_distance_km: float
    duration_minutes: float
    route_type: Literal["direct", "optimized"]
    assumptions: dict[str, float] = field(default_factory=dict)
