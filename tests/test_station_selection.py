from __future__ import annotations

from fakes import MUMBAI, PUNE, make_stop

from ev_route_planner.services.cities import KNOWN_CITIES
from ev_route_planner.services.geo import haversine_km
from ev_route_planner.services.station_selection import StationSelector, is_intra_city
from ev_route_planner.services.types import GeoPoint

MUMBAI_BOUNDS = KNOWN_CITIES["mumbai"]
ANDHERI = GeoPoint(latitude=19.00, longitude=72.79)
BORIVALI = GeoPoint(latitude=19.20, longitude=72.79)


def test_near_path_keeps_stops_along_the_corridor(expressway_stops) -> None:
    candidates = StationSelector().near_path(MUMBAI, PUNE, expressway_stops, max_detour_km=30)

    assert {c.station_id for c in candidates} == {"panvel", "khopoli", "lonavala", "talegaon"}
    distances = [c.distance_from_path_km for c in candidates]
    assert distances == sorted(distances)
    assert all(distance <= 30 for distance in distances)


def test_near_path_drops_stops_beyond_detour(expressway_stops) -> None:
    candidates = StationSelector().near_path(MUMBAI, PUNE, expressway_stops, max_detour_km=8)

    assert {c.station_id for c in candidates} == {"panvel", "khopoli", "lonavala"}
    assert all(c.distance_from_path_km <= 8 for c in candidates)


def test_near_path_with_no_stops_returns_empty() -> None:
    assert StationSelector().near_path(MUMBAI, PUNE, [], max_detour_km=30) == []


def test_is_intra_city_requires_both_endpoints_inside() -> None:
    assert is_intra_city(ANDHERI, BORIVALI, MUMBAI_BOUNDS)
    assert not is_intra_city(ANDHERI, PUNE, MUMBAI_BOUNDS)
    assert not is_intra_city(ANDHERI, BORIVALI, None)


def test_intra_city_trip_shrinks_detour_and_stays_in_city() -> None:
    stops = [
        make_stop("on-path", 19.10, 72.80),
        make_stop("west-of-city", 19.10, 72.76),
        make_stop("inland", 19.10, 72.87),
    ]

    candidates = StationSelector().near_path(
        ANDHERI, BORIVALI, stops, max_detour_km=30, city_bounds=MUMBAI_BOUNDS
    )

    # Detour ceiling becomes 30% of a ~22 km trip.
    assert [c.station_id for c in candidates] == ["on-path"]


def test_intra_city_candidates_are_capped() -> None:
    stops = [make_stop(f"s{index}", 19.01 + index * 0.003, 72.80) for index in range(60)]

    candidates = StationSelector().near_path(
        ANDHERI, BORIVALI, stops, max_detour_km=30, city_bounds=MUMBAI_BOUNDS
    )

    assert len(candidates) == 50


def test_closest_to_endpoints_ranks_by_nearest_endpoint(expressway_stops) -> None:
    candidates = StationSelector().closest_to_endpoints(
        MUMBAI, PUNE, expressway_stops, limit=2, max_distance_km=80
    )

    assert [c.station_id for c in candidates] == ["panvel", "talegaon"]
    assert candidates[0].distance_from_path_km == haversine_km(candidates[0].point, MUMBAI)


def test_closest_to_endpoints_limits_short_trips() -> None:
    start = GeoPoint(latitude=19.0760, longitude=72.8777)
    end = GeoPoint(latitude=19.0900, longitude=72.8777)
    stops = [
        make_stop("near", 19.10, 72.90),
        make_stop("forty-km", 19.0760 + 40 / 111, 72.8777),
    ]

    candidates = StationSelector().closest_to_endpoints(
        start, end, stops, limit=8, max_distance_km=80
    )

    assert [c.station_id for c in candidates] == ["near"]
