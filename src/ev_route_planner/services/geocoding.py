from __future__ import annotations

import asyncio
import hashlib
from typing import Any

import httpx
from django.conf import settings
from django.core.cache import cache

from ev_route_planner.exceptions import ExternalServiceError, InvalidLocationError
from ev_route_planner.services.types import CityBounds, GeocodeResult, GeoPoint


class GeocodingClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        retry_count: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.GEOCODING_BASE_URL).rstrip("/")
        self.timeout = settings.GEOCODING_TIMEOUT_SECONDS
        self.retry_count = settings.GEOCODING_RETRY_COUNT if retry_count is None else retry_count
        self.user_agent = settings.GEOCODING_USER_AGENT
        self.country_code = settings.GEOCODING_COUNTRY_CODE
        self.transport = transport

    async def geocode(self, query: str, *, bounds: CityBounds | None = None) -> GeocodeResult:
        cache_key = self._cache_key(query, self.country_code, bounds)
        cached = await cache.aget(cache_key)
        if cached:
            return GeocodeResult(
                point=GeoPoint(latitude=cached["latitude"], longitude=cached["longitude"]),
                label=cached["label"],
                country_code=cached["country_code"],
            )

        params: dict[str, Any] = {
            "q": query,
            "format": "jsonv2",
            "limit": 1,
            "addressdetails": 1,
        }
        if self.country_code:
            params["countrycodes"] = self.country_code
        if bounds is not None:
            params["viewbox"] = f"{bounds.west},{bounds.south},{bounds.east},{bounds.north}"
            params["bounded"] = 1

        for attempt in range(self.retry_count + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.get(
                        f"{self.base_url}/search",
                        params=params,
                        headers={
                            "Accept": "application/json",
                            "User-Agent": self.user_agent,
                        },
                    )
                response.raise_for_status()
                result = self._parse_result(response.json(), self.country_code)
                await cache.aset(
                    cache_key,
                    {
                        "latitude": result.point.latitude,
                        "longitude": result.point.longitude,
                        "label": result.label,
                        "country_code": result.country_code,
                    },
                    timeout=settings.GEOCODE_CACHE_TTL_SECONDS,
                )
                return result
            except InvalidLocationError:
                raise
            except ValueError as exc:
                raise InvalidLocationError("Invalid geocoding response") from exc
            except httpx.HTTPError as exc:
                if attempt >= self.retry_count:
                    raise ExternalServiceError("Geocoding request failed") from exc
                await asyncio.sleep(0.3 * (attempt + 1))

        raise ExternalServiceError("Geocoding request failed")

    @staticmethod
    def _cache_key(query: str, country_code: str, bounds: CityBounds | None) -> str:
        scope = ""
        if bounds is not None:
            scope = f"{bounds.west},{bounds.south},{bounds.east},{bounds.north}"
        digest = hashlib.sha256(f"{query.lower()}|{country_code}|{scope}".encode()).hexdigest()
        return f"geocode:{digest}"

    @staticmethod
    def _parse_result(payload: Any, expected_country: str) -> GeocodeResult:
        if not isinstance(payload, list) or not payload:
            raise InvalidLocationError("Location could not be resolved")

        first = payload[0]
        try:
            latitude = float(first["lat"])
            longitude = float(first["lon"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidLocationError("Invalid geocoding response") from exc

        label = str(first.get("display_name", "")).split(",")[0].strip()
        country_code = str(first.get("address", {}).get("country_code", "")).lower()
        if expected_country and country_code and country_code != expected_country.lower():
            raise InvalidLocationError(f"Location must be within country '{expected_country}'")

        return GeocodeResult(
            point=GeoPoint(latitude=latitude, longitude=longitude),
            label=label,
            country_code=country_code,
        )
