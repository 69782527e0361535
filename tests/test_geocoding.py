from __future__ import annotations

import asyncio

import httpx
import pytest

from ev_route_planner.exceptions import ExternalServiceError, InvalidLocationError
from ev_route_planner.services.cities import KNOWN_CITIES
from ev_route_planner.services.geocoding import GeocodingClient
from ev_route_planner.services.types import GeoPoint

PUNE_RESULT = [
    {
        "lat": "18.5213738",
        "lon": "73.8545071",
        "display_name": "Pune, Pune City, Maharashtra, India",
        "address": {"country_code": "in"},
    }
]


def _client(handler, retry_count: int = 0) -> GeocodingClient:
    return GeocodingClient(
        base_url="http://nominatim.test",
        retry_count=retry_count,
        transport=httpx.MockTransport(handler),
    )


def test_geocode_parses_first_result_and_caches() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=PUNE_RESULT)

    client = _client(handler)

    result = asyncio.run(client.geocode("Pune"))
    again = asyncio.run(client.geocode("pune"))

    assert result.point == GeoPoint(latitude=18.5213738, longitude=73.8545071)
    assert result.label == "Pune"
    assert result.country_code == "in"
    assert again == result
    assert len(requests) == 1
    assert requests[0].url.path == "/search"
    assert requests[0].url.params["q"] == "Pune"
    assert requests[0].url.params["countrycodes"] == "in"
    assert "viewbox" not in requests[0].url.params
    assert requests[0].headers["User-Agent"] == "ev-route-planner/1.0"


def test_geocode_within_city_is_bounded() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "lat": "19.1197",
                    "lon": "72.8468",
                    "display_name": "Andheri, Mumbai Suburban, Maharashtra, India",
                    "address": {"country_code": "in"},
                }
            ],
        )

    result = asyncio.run(_client(handler).geocode("Andheri", bounds=KNOWN_CITIES["mumbai"]))

    assert result.label == "Andheri"
    assert requests[0].url.params["viewbox"] == "72.7756,18.8928,73.0169,19.2771"
    assert requests[0].url.params["bounded"] == "1"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"error": "Unable to geocode"},
        [{"lat": "not-a-number", "lon": "73.8"}],
        [{"lat": "51.5", "lon": "-0.12", "address": {"country_code": "gb"}}],
    ],
    ids=["empty", "not-a-list", "bad-coordinates", "wrong-country"],
)
def test_unresolvable_location_raises(payload) -> None:
    client = _client(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(InvalidLocationError):
        asyncio.run(client.geocode("Somewhere"))


def test_upstream_failure_is_retried_then_raised(mocker) -> None:
    mocker.patch("ev_route_planner.services.geocoding.asyncio.sleep", mocker.AsyncMock())
    attempts: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503)

    with pytest.raises(ExternalServiceError):
        asyncio.run(_client(handler, retry_count=2).geocode("Pune"))

    assert len(attempts) == 3
