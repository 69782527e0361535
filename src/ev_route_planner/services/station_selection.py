from __future__ import annotations

from collections.abc import Iterable

from ev_route_planner.services.geo import distance_from_segment_km, haversine_km, within_bounds
from ev_route_planner.services.types import CandidateStop, ChargingStop, CityBounds, GeoPoint

PADDING_DEGREES_PER_KM = 0.015
INTRA_CITY_DETOUR_SHARE = 0.3
INTRA_CITY_MIN_DETOUR_KM = 1.0
INTRA_CITY_CANDIDATE_CAP = 50
CANDIDATE_CAP = 200
SHORT_TRIP_KM = 5.0
SHORT_TRIP_MAX_DISTANCE_KM = 30.0


def is_intra_city(start: GeoPoint, end: GeoPoint, city_bounds: CityBounds | None) -> bool:
    return (
        city_bounds is not None
        and within_bounds(start, city_bounds)
        and within_bounds(end, city_bounds)
    )


class StationSelector:
    def near_path(
        self,
        start: GeoPoint,
        end: GeoPoint,
        stops: Iterable[ChargingStop],
        max_detour_km: float,
        city_bounds: CityBounds | None = None,
    ) -> list[CandidateStop]:
        intra_city = is_intra_city(start, end, city_bounds)
        if intra_city:
            direct_km = haversine_km(start, end)
            max_distance_km = min(
                max_detour_km, max(INTRA_CITY_MIN_DETOUR_KM, direct_km * INTRA_CITY_DETOUR_SHARE)
            )
            limit = INTRA_CITY_CANDIDATE_CAP
        else:
            max_distance_km = max_detour_km
            limit = CANDIDATE_CAP

        padding = max_distance_km * PADDING_DEGREES_PER_KM
        min_lat = min(start.latitude, end.latitude) - padding
        max_lat = max(start.latitude, end.latitude) + padding
        min_lon = min(start.longitude, end.longitude) - padding
        max_lon = max(start.longitude, end.longitude) + padding

        candidates: list[CandidateStop] = []
        for stop in stops:
            point = stop.point
            if not (min_lat <= point.latitude <= max_lat and min_lon <= point.longitude <= max_lon):
                continue
            if intra_city and not within_bounds(point, city_bounds):
                continue

            distance_from_path = distance_from_segment_km(point, start, end)
            if distance_from_path > max_distance_km:
                continue
            candidates.append(
                CandidateStop(stop=stop, distance_from_path_km=distance_from_path)
            )

        candidates.sort(key=lambda candidate: candidate.distance_from_path_km)
        return candidates[:limit]

    def closest_to_endpoints(
        self,
        start: GeoPoint,
        end: GeoPoint,
        stops: Iterable[ChargingStop],
        limit: int,
        max_distance_km: float,
    ) -> list[CandidateStop]:
        if haversine_km(start, end) < SHORT_TRIP_KM:
            max_distance_km = min(max_distance_km, SHORT_TRIP_MAX_DISTANCE_KM)

        ranked: list[CandidateStop] = []
        for stop in stops:
            nearest = min(haversine_km(stop.point, start), haversine_km(stop.point, end))
            if nearest <= max_distance_km:
                ranked.append(CandidateStop(stop=stop, distance_from_path_km=nearest))

        ranked.sort(key=lambda candidate: candidate.distance_from_path_km)
        return ranked[:limit]
