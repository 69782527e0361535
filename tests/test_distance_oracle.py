from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest
from fakes import MUMBAI, PUNE

from ev_route_planner.services.distance_oracle import DistanceCache, DistanceOracle
from ev_route_planner.services.geo import haversine_km
from ev_route_planner.services.osrm import OsrmClient
from ev_route_planner.services.types import GeoPoint, RoadLeg

EXPRESSWAY_ROUTE = {
    "code": "Ok",
    "routes": [
        {
            "distance": 148_732.0,
            "duration": 10_150.0,
            "geometry": {
                "coordinates": [
                    [72.8777, 19.0760],
                    [73.4062, 18.7546],
                    [73.8567, 18.5204],
                ]
            },
        }
    ],
}

NEGATIVE_ROUTE = {
    "code": "Ok",
    "routes": [
        {
            "distance": -5_000.0,
            "duration": -60.0,
            "geometry": {"coordinates": [[72.8777, 19.0760], [73.8567, 18.5204]]},
        }
    ],
}


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


class RecordingHandler:
    def __init__(self, respond: Callable[[], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond()


def _refuse_connection() -> httpx.Response:
    raise httpx.ConnectError("connection refused")


def _oracle(handler: RecordingHandler, clock: FakeClock | None = None) -> DistanceOracle:
    client = OsrmClient(
        base_url="http://osrm.test",
        retry_count=0,
        transport=httpx.MockTransport(handler),
    )
    cache = DistanceCache(ttl_seconds=1800, clock=clock or FakeClock())
    return DistanceOracle(osrm_client=client, cache=cache)


def test_provider_result_is_converted_and_cached() -> None:
    handler = RecordingHandler(lambda: httpx.Response(200, json=EXPRESSWAY_ROUTE))
    oracle = _oracle(handler)

    first = asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    second = asyncio.run(oracle.road_distance(MUMBAI, PUNE))

    assert first.distance_km == 148.7
    assert first.duration_minutes == 169.2
    assert first.polyline[0] == MUMBAI
    assert first.polyline[-1] == PUNE
    assert second == first
    assert len(handler.requests) == 1
    assert handler.requests[0].url.path == "/route/v1/driving/72.877700,19.076000;73.856700,18.520400"
    assert handler.requests[0].url.params["geometries"] == "geojson"


def test_reverse_lookup_reuses_entry_with_reversed_polyline() -> None:
    handler = RecordingHandler(lambda: httpx.Response(200, json=EXPRESSWAY_ROUTE))
    oracle = _oracle(handler)

    forward = asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    backward = asyncio.run(oracle.road_distance(PUNE, MUMBAI))

    assert backward.distance_km == forward.distance_km
    assert backward.duration_minutes == forward.duration_minutes
    assert backward.polyline == tuple(reversed(forward.polyline))
    assert len(handler.requests) == 1


def test_expired_entry_triggers_refetch() -> None:
    handler = RecordingHandler(lambda: httpx.Response(200, json=EXPRESSWAY_ROUTE))
    clock = FakeClock()
    oracle = _oracle(handler, clock)

    asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    clock.now += 1799
    asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    assert len(handler.requests) == 1

    clock.now += 2
    asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    assert len(handler.requests) == 2


def test_short_hop_skips_provider() -> None:
    handler = RecordingHandler(lambda: httpx.Response(500))
    oracle = _oracle(handler)
    nearby = GeoPoint(latitude=MUMBAI.latitude + 0.001, longitude=MUMBAI.longitude)

    leg = asyncio.run(oracle.road_distance(MUMBAI, nearby))

    assert handler.requests == []
    assert leg.distance_km == pytest.approx(haversine_km(MUMBAI, nearby))
    assert leg.duration_minutes == pytest.approx(leg.distance_km * 1.5)
    assert leg.polyline == (MUMBAI, nearby)


@pytest.mark.parametrize(
    "respond",
    [
        lambda: httpx.Response(503),
        lambda: httpx.Response(200, json={"code": "NoRoute", "routes": []}),
        lambda: httpx.Response(200, json={"code": "Ok", "routes": [{"distance": 10.0}]}),
        lambda: httpx.Response(200, content=b"<html>busy</html>"),
        lambda: httpx.Response(200, json={"code": "Ok", "routes": {"first": {}}}),
        lambda: httpx.Response(200, json=NEGATIVE_ROUTE),
        _refuse_connection,
    ],
    ids=[
        "http-error",
        "no-route",
        "missing-geometry",
        "not-json",
        "routes-not-a-list",
        "negative-distance",
        "transport-error",
    ],
)
def test_provider_failure_falls_back_to_straight_line_and_is_cached(respond) -> None:
    handler = RecordingHandler(respond)
    oracle = _oracle(handler)

    leg = asyncio.run(oracle.road_distance(MUMBAI, PUNE))
    again = asyncio.run(oracle.road_distance(MUMBAI, PUNE))

    assert leg.distance_km == pytest.approx(haversine_km(MUMBAI, PUNE))
    assert leg.duration_minutes == pytest.approx(leg.distance_km * 1.5)
    assert leg.distance_km >= 0
    assert leg.polyline is None
    assert again == leg
    assert len(handler.requests) == 1


def test_cache_keys_are_rounded_to_five_decimals() -> None:
    cache = DistanceCache(ttl_seconds=60, clock=FakeClock())
    leg = RoadLeg(distance_km=12.3, duration_minutes=20.0, polyline=(MUMBAI, PUNE))
    jittered = GeoPoint(latitude=MUMBAI.latitude + 1e-7, longitude=MUMBAI.longitude)

    cache.set(MUMBAI, PUNE, leg)

    assert DistanceCache.key(MUMBAI, PUNE) == "19.07600,72.87770_18.52040,73.85670"
    assert cache.get(jittered, PUNE) == leg
    assert len(cache) == 1


def test_cache_reverse_entry_without_polyline() -> None:
    clock = FakeClock()
    cache = DistanceCache(ttl_seconds=60, clock=clock)
    cache.set(MUMBAI, PUNE, RoadLeg(distance_km=120.0, duration_minutes=180.0))

    assert cache.get(PUNE, MUMBAI) == RoadLeg(distance_km=120.0, duration_minutes=180.0)

    clock.now += 60
    assert cache.get(PUNE, MUMBAI) is None
    assert cache.get(MUMBAI, PUNE) is None
