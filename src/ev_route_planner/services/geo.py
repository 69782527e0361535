from __future__ import annotations

import math

from ev_route_planner.services.types import CityBounds, GeoPoint

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
SEGMENT_BOX_BUFFER_DEGREES = 0.01
MIN_SEGMENT_KM = 0.1


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2.0) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def distance_from_segment_km(point: GeoPoint, start: GeoPoint, end: GeoPoint) -> float:
    """Distance from ``point`` to the segment ``start``-``end``.

    Uses the triangle height derived from Heron's formula. Points lying outside
    both the latitude and longitude span of the segment are answered with the
    nearest endpoint distance without the exact calculation.
    """
    if start == end:
        return haversine_km(start, point)

    buffer = SEGMENT_BOX_BUFFER_DEGREES
    within_lat = (
        min(start.latitude, end.latitude) - buffer
        <= point.latitude
        <= max(start.latitude, end.latitude) + buffer
    )
    within_lon = (
        min(start.longitude, end.longitude) - buffer
        <= point.longitude
        <= max(start.longitude, end.longitude) + buffer
    )
    if not within_lat and not within_lon:
        return min(haversine_km(start, point), haversine_km(end, point))

    a = haversine_km(start, point)
    b = haversine_km(end, point)
    c = haversine_km(start, end)
    if c < MIN_SEGMENT_KM:
        return min(a, b)

    s = (a + b + c) / 2.0
    area = math.sqrt(max(0.0, s * (s - a) * (s - b) * (s - c)))
    return (2.0 * area) / c


def within_bounds(point: GeoPoint, bounds: CityBounds, buffer_km: float = 0.5) -> bool:
    buffer = buffer_km / KM_PER_DEGREE
    return (
        bounds.south - buffer <= point.latitude <= bounds.north + buffer
        and bounds.west - buffer <= point.longitude <= bounds.east + buffer
    )
