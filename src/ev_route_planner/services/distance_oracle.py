from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from django.conf import settings

from ev_route_planner.exceptions import RoutePlannerError
from ev_route_planner.services.geo import haversine_km
from ev_route_planner.services.osrm import OsrmClient
from ev_route_planner.services.types import GeoPoint, RoadLeg

logger = logging.getLogger(__name__)

SHORT_HOP_KM = 0.2
FALLBACK_MINUTES_PER_KM = 1.5


@dataclass(slots=True, frozen=True)
class CacheEntry:
    leg: RoadLeg
    created_at: float


class DistanceCache:
    """In-memory road leg cache with a fixed time-to-live.

    Entries are keyed by the ordered point pair rounded to five decimals. A
    lookup that misses the forward key falls back to the reverse key and serves
    that entry with its polyline reversed. Expired entries are ignored on read
    and overwritten on the next write; nothing sweeps them in the background.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = (
            settings.DISTANCE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        )
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(start: GeoPoint, end: GeoPoint) -> str:
        return (
            f"{start.latitude:.5f},{start.longitude:.5f}"
            f"_{end.latitude:.5f},{end.longitude:.5f}"
        )

    def get(self, start: GeoPoint, end: GeoPoint) -> RoadLeg | None:
        now = self.clock()
        with self._lock:
            forward = self._entries.get(self.key(start, end))
            reverse = self._entries.get(self.key(end, start))

        if forward is not None and self._is_live(forward, now):
            return forward.leg
        if reverse is not None and self._is_live(reverse, now):
            return reverse.leg.reversed()
        return None

    def set(self, start: GeoPoint, end: GeoPoint, leg: RoadLeg) -> None:
        entry = CacheEntry(leg=leg, created_at=self.clock())
        with self._lock:
            self._entries[self.key(start, end)] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl_seconds


class DistanceOracle:
    """Road distance lookups that never fail.

    Provider errors degrade to a straight-line estimate which is cached like
    any other answer, so a dead routing service costs one failed call per pair
    per TTL window.
    """

    def __init__(
        self,
        osrm_client: OsrmClient | None = None,
        cache: DistanceCache | None = None,
    ) -> None:
        self.osrm_client = osrm_client or OsrmClient()
        self.cache = cache if cache is not None else DistanceCache()

    async def road_distance(self, start: GeoPoint, end: GeoPoint) -> RoadLeg:
        cached = self.cache.get(start, end)
        if cached is not None:
            return cached

        straight_km = haversine_km(start, end)
        if straight_km < SHORT_HOP_KM:
            leg = RoadLeg(
                distance_km=straight_km,
                duration_minutes=straight_km * FALLBACK_MINUTES_PER_KM,
                polyline=(start, end),
            )
        else:
            try:
                leg = await self.osrm_client.route(start, end)
            except RoutePlannerError as exc:
                logger.warning(
                    "Road distance unavailable for %s, using %.1f km straight line: %s",
                    self.cache.key(start, end),
                    straight_km,
                    exc,
                )
                leg = straight_line_leg(start, end)

        self.cache.set(start, end, leg)
        return leg


def straight_line_leg(start: GeoPoint, end: GeoPoint) -> RoadLeg:
    straight_km = haversine_km(start, end)
    return RoadLeg(
        distance_km=straight_km,
        duration_minutes=straight_km * FALLBACK_MINUTES_PER_KM,
    )
