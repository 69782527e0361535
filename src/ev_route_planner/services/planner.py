from __future__ import annotations

from django.conf import settings

from ev_route_planner.schemas import (
    ChargingStopResponse,
    Coordinate,
    RoutePlanRequest,
    RoutePlanResponse,
    RouteSummaryResponse,
)
from ev_route_planner.services.catalog import StationCatalog
from ev_route_planner.services.cities import city_bounds
from ev_route_planner.services.distance_oracle import DistanceOracle
from ev_route_planner.services.geocoding import GeocodingClient
from ev_route_planner.services.optimizer import RouteOptimizer
from ev_route_planner.services.types import CityBounds, GeoPoint


class RoutePlannerService:
    def __init__(
        self,
        geocoding_client: GeocodingClient | None = None,
        route_optimizer: RouteOptimizer | None = None,
    ) -> None:
        self.geocoding_client = geocoding_client or GeocodingClient()
        self.route_optimizer = route_optimizer or RouteOptimizer(
            oracle=DistanceOracle(),
            catalog=StationCatalog(),
        )

    async def plan(self, request: RoutePlanRequest) -> RoutePlanResponse:
        max_detour_km = request.max_detour_km or float(settings.DEFAULT_MAX_DETOUR_KM)
        max_stops = (
            request.max_stops if request.max_stops is not None else int(settings.DEFAULT_MAX_STOPS)
        )
        bounds = city_bounds(request.city)
        start = await self._resolve(request.start, bounds)
        finish = await self._resolve(request.finish, bounds)

        route = await self.route_optimizer.find_optimal_route(
            start,
            finish,
            max_detour_km=max_detour_km,
            max_stops=max_stops,
            optimize=request.optimize,
            city_bounds=bounds,
        )

        stops = [
            ChargingStopResponse(
                station_id=candidate.stop.station_id,
                name=candidate.stop.name,
                address=candidate.stop.address,
                provider=candidate.stop.provider,
                latitude=candidate.stop.point.latitude,
                longitude=candidate.stop.point.longitude,
                available_points=candidate.stop.available_points,
                total_points=candidate.stop.total_points,
                power_kw=candidate.stop.power_kw,
                price_per_kwh=round(candidate.stop.price_per_kwh, 2),
                rating=candidate.stop.rating,
                amenities=list(candidate.stop.amenities),
                distance_from_path_km=round(candidate.distance_from_path_km, 3),
            )
            for candidate in route.stops
        ]

        return RoutePlanResponse(
            start=_coordinate(start),
            finish=_coordinate(finish),
            route_type=route.route_type,
            path=[_coordinate(point) for point in route.path],
            route_geojson={
                "type": "LineString",
                "coordinates": [[point.longitude, point.latitude] for point in route.road_path],
            },
            stops=stops,
            summary=RouteSummaryResponse(
                distance_km=route.total_distance_km,
                duration_minutes=route.duration_minutes,
                stop_count=len(stops),
            ),
            assumptions=route.assumptions,
        )

    async def _resolve(self, location: Coordinate | str, bounds: CityBounds | None) -> GeoPoint:
        if isinstance(location, Coordinate):
            return GeoPoint(latitude=location.latitude, longitude=location.longitude)
        result = await self.geocoding_client.geocode(location, bounds=bounds)
        return result.point


def _coordinate(point: GeoPoint) -> Coordinate:
    return Coordinate(latitude=round(point.latitude, 6), longitude=round(point.longitude, 6))
