from __future__ import annotations

import logging
from dataclasses import replace
from typing import Protocol

from ev_route_planner.services.distance_oracle import FALLBACK_MINUTES_PER_KM
from ev_route_planner.services.geo import haversine_km
from ev_route_planner.services.search import PathSearch, RoadDistanceSource, SearchWeights
from ev_route_planner.services.station_selection import StationSelector, is_intra_city
from ev_route_planner.services.types import (
    ChargingStop,
    CityBounds,
    GeoPoint,
    OptimizedRoute,
    RoadLeg,
    RouteRequest,
    SearchNode,
)

logger = logging.getLogger(__name__)

TRIVIAL_DISTANCE_KM = 1.0
MIN_OPTIMIZED_ROAD_KM = 5.0
INTRA_CITY_MAX_DETOUR_KM = 5.0
INTRA_CITY_MAX_STOPS = 2
SEARCH_CANDIDATE_CAP = 50
FALLBACK_CANDIDATE_LIMIT = 8
FALLBACK_MAX_DISTANCE_KM = 80.0


class StopCatalog(Protocol):
    async def fetch_all(self) -> list[ChargingStop]: ...


class RouteOptimizer:
    def __init__(
        self,
        oracle: RoadDistanceSource,
        catalog: StopCatalog,
        station_selector: StationSelector | None = None,
        weights: SearchWeights | None = None,
    ) -> None:
        self.oracle = oracle
        self.catalog = catalog
        self.station_selector = station_selector or StationSelector()
        self.weights = weights

    async def find_optimal_route(
        self,
        start: GeoPoint,
        end: GeoPoint,
        max_detour_km: float = 30.0,
        max_stops: int = 5,
        optimize: bool = False,
        city_bounds: CityBounds | None = None,
    ) -> OptimizedRoute:
        request = RouteRequest(
            start=start,
            end=end,
            max_detour_km=max(0.0, max_detour_km),
            max_stops=max(0, max_stops),
            optimize=optimize,
            city_bounds=city_bounds,
        )
        if is_intra_city(start, end, city_bounds):
            request = replace(
                request,
                max_detour_km=min(request.max_detour_km, INTRA_CITY_MAX_DETOUR_KM),
                max_stops=min(request.max_stops, INTRA_CITY_MAX_STOPS),
            )
            logger.debug(
                "Intra-city route, detour limited to %.1f km and %d stops",
                request.max_detour_km,
                request.max_stops,
            )
        return await self._plan(request)

    async def _plan(self, request: RouteRequest) -> OptimizedRoute:
        start, end = request.start, request.end
        straight_km = haversine_km(start, end)
        if straight_km < TRIVIAL_DISTANCE_KM:
            return self._direct_route(
                request,
                RoadLeg(
                    distance_km=straight_km,
                    duration_minutes=straight_km * FALLBACK_MINUTES_PER_KM,
                    polyline=(start, end),
                ),
            )

        direct_leg = await self.oracle.road_distance(start, end)
        logger.info("Direct road distance: %.1f km", direct_leg.distance_km)
        if not request.optimize or direct_leg.distance_km < MIN_OPTIMIZED_ROAD_KM:
            return self._direct_route(request, direct_leg)

        stops = await self.catalog.fetch_all()
        logger.info("Loaded %d stations for route optimization", len(stops))

        candidates = self.station_selector.near_path(
            start, end, stops, request.max_detour_km, request.city_bounds
        )
        if not candidates:
            candidates = self.station_selector.closest_to_endpoints(
                start, end, stops, FALLBACK_CANDIDATE_LIMIT, FALLBACK_MAX_DISTANCE_KM
            )
            logger.info("No stations near path, %d near start or end", len(candidates))
            if not candidates:
                return self._direct_route(request, direct_leg)

        candidates = sorted(candidates, key=lambda c: c.distance_from_path_km)
        candidates = candidates[:SEARCH_CANDIDATE_CAP]

        search = PathSearch(self.oracle, self.weights)
        result = await search.run(
            start, end, candidates, request.max_detour_km, request.max_stops
        )
        return await self._build_route(request, result.reconstruct_path())

    async def _build_route(
        self,
        request: RouteRequest,
        path: list[SearchNode],
    ) -> OptimizedRoute:
        points = [node.point for node in path]
        stops = [node.candidate for node in path if node.candidate is not None]

        total_distance = 0.0
        total_duration = 0.0
        road_path: list[GeoPoint] = []
        for segment_start, segment_end in zip(points, points[1:]):
            leg = await self.oracle.road_distance(segment_start, segment_end)
            total_distance += leg.distance_km
            total_duration += leg.duration_minutes

            polyline = list(leg.polyline) if leg.polyline else [segment_start, segment_end]
            road_path.extend(polyline if not road_path else polyline[1:])

        return OptimizedRoute(
            path=points,
            road_path=road_path,
            stops=stops,
            total_distance_km=round(total_distance, 1),
            duration_minutes=round(total_duration, 1),
            route_type="optimized",
            assumptions=_assumptions(request),
        )

    @staticmethod
    def _direct_route(request: RouteRequest, leg: RoadLeg) -> OptimizedRoute:
        return OptimizedRoute(
            path=[request.start, request.end],
            road_path=list(leg.polyline) if leg.polyline else [request.start, request.end],
            stops=[],
            total_distance_km=round(leg.distance_km, 1),
            duration_minutes=round(leg.duration_minutes, 1),
            route_type="direct",
            assumptions=_assumptions(request),
        )


def _assumptions(request: RouteRequest) -> dict[str, float]:
    return {
        "max_detour_km": float(request.max_detour_km),
        "max_stops": float(request.max_stops),
    }
