from __future__ import annotations

from ev_route_planner.models import ChargingStation
from ev_route_planner.services.types import ChargingStop, GeoPoint


class StationCatalog:
    """Read-only access to the charging station table."""

    async def fetch_all(self) -> list[ChargingStop]:
        stations = ChargingStation.objects.only(
            "station_id",
            "name",
            "address",
            "provider",
            "latitude",
            "longitude",
            "total_points",
            "available_points",
            "power_kw",
            "price_per_kwh",
            "rating",
            "amenities",
        )
        return [to_charging_stop(station) async for station in stations]


def to_charging_stop(station: ChargingStation) -> ChargingStop:
    return ChargingStop(
        station_id=station.station_id,
        name=station.name or "Unnamed Station",
        address=station.address or "Unknown Location",
        point=GeoPoint(latitude=station.latitude, longitude=station.longitude),
        total_points=station.total_points,
        available_points=station.available_points,
        power_kw=float(station.power_kw),
        price_per_kwh=float(station.price_per_kwh),
        provider=station.provider,
        rating=station.rating,
        amenities=tuple(station.amenities or ()),
    )
