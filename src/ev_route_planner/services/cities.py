from __future__ import annotations

from ev_route_planner.services.types import CityBounds

KNOWN_CITIES: dict[str, CityBounds] = {
    "mumbai": CityBounds(north=19.2771, south=18.8928, east=73.0169, west=72.7756),
    "delhi": CityBounds(north=28.8836, south=28.4041, east=77.3463, west=76.8386),
    "bangalore": CityBounds(north=13.1368, south=12.8342, east=77.7480, west=77.4601),
    "chennai": CityBounds(north=13.2366, south=12.9419, east=80.3181, west=80.1843),
    "kolkata": CityBounds(north=22.6293, south=22.4716, east=88.4421, west=88.2176),
}


def city_bounds(name: str | None) -> CityBounds | None:
    if not name:
        return None
    return KNOWN_CITIES.get(name.strip().lower())
