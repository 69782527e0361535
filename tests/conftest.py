from __future__ import annotations

import pytest
from django.core.cache import cache
from django.test import Client
from fakes import FakeRoadDistances, make_stop

from ev_route_planner.services.types import ChargingStop


@pytest.fixture
def api_client() -> Client:
    return Client()


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def road_distances() -> FakeRoadDistances:
    return FakeRoadDistances()


@pytest.fixture
def expressway_stops() -> list[ChargingStop]:
    return [
        make_stop("panvel", 18.9894, 73.1175),
        make_stop("khopoli", 18.7856, 73.3446, price=13.0),
        make_stop("lonavala", 18.7546, 73.4062, available=5, total=8),
        make_stop("talegaon", 18.7357, 73.6755, rating=None),
        make_stop("delhi", 28.7041, 77.1025),
        make_stop("bengaluru", 12.9716, 77.5946),
    ]
