from __future__ import annotations

import asyncio
from typing import Any

import httpx
from django.conf import settings

from ev_route_planner.exceptions import ExternalServiceError, NoRouteFoundError
from ev_route_planner.services.types import GeoPoint, RoadLeg

METERS_PER_KM = 1000.0
SECONDS_PER_MINUTE = 60.0


class OsrmClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        retry_count: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.OSRM_BASE_URL).rstrip("/")
        self.timeout = settings.OSRM_TIMEOUT_SECONDS if timeout is None else timeout
        self.retry_count = settings.OSRM_RETRY_COUNT if retry_count is None else retry_count
        self.transport = transport

    async def route(self, start: GeoPoint, finish: GeoPoint) -> RoadLeg:
        coordinates = ";".join(
            f"{point.longitude:.6f},{point.latitude:.6f}" for point in (start, finish)
        )
        endpoint = f"{self.base_url}/route/v1/driving/{coordinates}"
        params = {
            "overview": "full",
            "geometries": "geojson",
            "steps": "false",
            "annotations": "false",
        }

        for attempt in range(self.retry_count + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.get(endpoint, params=params)
                response.raise_for_status()
                try:
                    payload = response.json()
                except ValueError as exc:
                    raise NoRouteFoundError("Routing response is not valid JSON") from exc
                return self._parse_response(payload)
            except NoRouteFoundError:
                raise
            except httpx.HTTPError as exc:
                if attempt >= self.retry_count:
                    raise ExternalServiceError("OSRM request failed") from exc
                await asyncio.sleep(0.3 * (attempt + 1))

        raise ExternalServiceError("OSRM request failed")

    @staticmethod
    def _parse_response(payload: Any) -> RoadLeg:
        if not isinstance(payload, dict) or payload.get("code") != "Ok":
            raise NoRouteFoundError("Could not compute route")

        routes = payload.get("routes") or []
        if not isinstance(routes, list) or not routes:
            raise NoRouteFoundError("Could not compute route")

        try:
            first = routes[0]
            polyline = tuple(
                GeoPoint(latitude=float(coord[1]), longitude=float(coord[0]))
                for coord in first["geometry"]["coordinates"]
            )
            distance_km = float(first["distance"]) / METERS_PER_KM
            duration_minutes = float(first["duration"]) / SECONDS_PER_MINUTE
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise NoRouteFoundError("Malformed route payload") from exc

        if distance_km < 0 or duration_minutes < 0:
            raise NoRouteFoundError("Malformed route payload")

        if len(polyline) < 2:
            raise NoRouteFoundError("Route geometry unavailable")

        return RoadLeg(
            distance_km=round(distance_km, 1),
            duration_minutes=round(duration_minutes, 1),
            polyline=polyline,
        )
