from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Protocol

from ev_route_planner.exceptions import RoutePlannerError
from ev_route_planner.services.distance_oracle import straight_line_leg
from ev_route_planner.services.geo import haversine_km
from ev_route_planner.services.types import CandidateStop, GeoPoint, RoadLeg, SearchNode

logger = logging.getLogger(__name__)

ROOT_INDEX = 0


class RoadDistanceSource(Protocol):
    async def road_distance(self, start: GeoPoint, end: GeoPoint) -> RoadLeg: ...


@dataclass(slots=True, frozen=True)
class BonusWeights:
    proximity: float
    availability: float
    price: float
    rating: float
    distribution: float
    scale: float


@dataclass(slots=True, frozen=True)
class SearchWeights:
    """Hand-tuned search constants.

    The values reproduce the planner's established behaviour; they are not
    derived from anything and can be overridden per search.
    """

    max_iterations: int = 200
    goal_radius_km: float = 0.5
    duplicate_radius_km: float = 0.1
    km_per_segment: float = 120.0
    min_segments: int = 2
    short_route_km: float = 20.0
    short_route_stop_limit: int = 5
    long_route_stop_limit: int = 15
    goal_penalty: float = 1.5
    goal_penalty_min_route_km: float = 200.0
    goal_penalty_max_progress: float = 0.7
    max_price_per_kwh: float = 30.0
    max_rating: float = 5.0
    default_rating_factor: float = 0.5
    short_route_bonus: BonusWeights = field(
        default_factory=lambda: BonusWeights(
            proximity=6.0, availability=2.0, price=4.0, rating=0.0, distribution=0.0, scale=4.0
        )
    )
    long_route_bonus: BonusWeights = field(
        default_factory=lambda: BonusWeights(
            proximity=4.0, availability=3.0, price=2.0, rating=1.0, distribution=5.0, scale=7.0
        )
    )


@dataclass(slots=True)
class SearchResult:
    nodes: list[SearchNode]
    end_index: int
    iterations: int
    exhausted: bool = False

    def reconstruct_path(self) -> list[SearchNode]:
        path: list[SearchNode] = []
        index: int | None = self.end_index
        while index is not None:
            node = self.nodes[index]
            path.append(node)
            index = node.parent
        path.reverse()
        return path


class PathSearch:
    """A*-style search over "position after visiting some stops" states.

    Nodes are kept in an arena and refer to their parent by index. Edges are
    road legs from the current position to a remaining candidate stop or to the
    goal, and stop nodes are scored with a bonus for proximity to the direct
    path, free charging points, price, rating and even spacing along the trip.
    """

    def __init__(
        self,
        distance_source: RoadDistanceSource,
        weights: SearchWeights | None = None,
    ) -> None:
        self.distance_source = distance_source
        self.weights = weights or SearchWeights()

    async def run(
        self,
        start: GeoPoint,
        goal: GeoPoint,
        candidates: list[CandidateStop],
        max_detour_km: float,
        max_stops: int,
    ) -> SearchResult:
        weights = self.weights
        direct_leg = await self._leg(start, goal)
        direct_km = direct_leg.distance_km

        nodes: list[SearchNode] = [
            SearchNode(point=start, parent=None, g=0.0, h=direct_km, f=direct_km)
        ]
        open_set: list[int] = [ROOT_INDEX]
        closed_set: list[int] = []
        visited_stops: set[str] = set()

        target_segments = min(
            max(weights.min_segments, math.ceil(direct_km / weights.km_per_segment)),
            max_stops + 1,
        )
        ideal_segment_km = direct_km / target_segments
        short_route = direct_km < weights.short_route_km
        stop_limit = (
            weights.short_route_stop_limit if short_route else weights.long_route_stop_limit
        )

        iterations = 0
        while open_set and iterations < weights.max_iterations:
            iterations += 1
            open_set.sort(key=lambda index: nodes[index].f)
            current_index = open_set.pop(0)
            closed_set.append(current_index)
            current = nodes[current_index]

            if haversine_km(current.point, goal) < weights.goal_radius_km:
                logger.debug("Search reached goal after %d iterations", iterations)
                return SearchResult(nodes=nodes, end_index=current_index, iterations=iterations)

            stops_visited = count_stops(nodes, current_index)
            distance_from_start = distance_travelled(nodes, current_index)
            progress_total = distance_from_start + direct_km
            progress = distance_from_start / progress_total if progress_total > 0 else 1.0

            to_goal = await self._leg(current.point, goal)

            if stops_visited >= max_stops:
                nodes.append(
                    SearchNode(
                        point=goal,
                        parent=current_index,
                        g=current.g + to_goal.distance_km,
                        h=0.0,
                        f=current.g + to_goal.distance_km,
                        road_distance_km=to_goal.distance_km,
                        road_duration_minutes=to_goal.duration_minutes,
                    )
                )
                logger.debug("Stop budget of %d reached, heading to goal", max_stops)
                return SearchResult(
                    nodes=nodes, end_index=len(nodes) - 1, iterations=iterations
                )

            goal_factor = 1.0
            if (
                not short_route
                and stops_visited < target_segments - 1
                and direct_km > weights.goal_penalty_min_route_km
                and progress < weights.goal_penalty_max_progress
            ):
                goal_factor = weights.goal_penalty

            neighbors = [
                SearchNode(
                    point=goal,
                    parent=current_index,
                    g=current.g + to_goal.distance_km,
                    h=0.0,
                    f=(current.g + to_goal.distance_km) * goal_factor,
                    road_distance_km=to_goal.distance_km,
                    road_duration_minutes=to_goal.duration_minutes,
                )
            ]

            remaining = sorted(
                (c for c in candidates if c.station_id not in visited_stops),
                key=lambda candidate: candidate.distance_from_path_km,
            )[:stop_limit]

            for candidate in remaining:
                to_stop = await self._leg(current.point, candidate.point)
                stop_to_goal = await self._leg(candidate.point, goal)

                detour_km = to_stop.distance_km + stop_to_goal.distance_km - to_goal.distance_km
                if detour_km > max_detour_km:
                    continue

                distance_at_stop = distance_from_start + to_stop.distance_km
                ideal_position = (stops_visited + 1) * ideal_segment_km
                position_score = (
                    abs(distance_at_stop - ideal_position) / ideal_segment_km
                    if ideal_segment_km > 0
                    else 0.0
                )

                g = current.g + to_stop.distance_km
                h = stop_to_goal.distance_km
                bonus = self._heuristic_bonus(candidate, max_detour_km, position_score, short_route)
                neighbors.append(
                    SearchNode(
                        point=candidate.point,
                        parent=current_index,
                        g=g,
                        h=h,
                        f=g + h - bonus,
                        candidate=candidate,
                        road_distance_km=to_stop.distance_km,
                        road_duration_minutes=to_stop.duration_minutes,
                    )
                )

            for neighbor in neighbors:
                if any(self._same_place(nodes[index], neighbor) for index in closed_set):
                    continue

                existing_index = next(
                    (index for index in open_set if self._same_place(nodes[index], neighbor)),
                    None,
                )
                if existing_index is not None and neighbor.g >= nodes[existing_index].g:
                    continue

                if neighbor.candidate is not None:
                    visited_stops.add(neighbor.candidate.station_id)

                if existing_index is None:
                    nodes.append(neighbor)
                    open_set.append(len(nodes) - 1)
                else:
                    existing = nodes[existing_index]
                    existing.g = neighbor.g
                    existing.f = neighbor.f
                    existing.parent = neighbor.parent
                    existing.road_distance_km = neighbor.road_distance_km
                    existing.road_duration_minutes = neighbor.road_duration_minutes

        logger.info(
            "Search ended after %d iterations with %d open nodes, falling back to direct route",
            iterations,
            len(open_set),
        )
        fallback_leg = await self._leg(start, goal)
        nodes.append(
            SearchNode(
                point=goal,
                parent=ROOT_INDEX,
                g=fallback_leg.distance_km,
                h=0.0,
                f=fallback_leg.distance_km,
                road_distance_km=fallback_leg.distance_km,
                road_duration_minutes=fallback_leg.duration_minutes,
            )
        )
        return SearchResult(
            nodes=nodes, end_index=len(nodes) - 1, iterations=iterations, exhausted=True
        )

    async def _leg(self, start: GeoPoint, end: GeoPoint) -> RoadLeg:
        try:
            return await self.distance_source.road_distance(start, end)
        except RoutePlannerError as exc:
            logger.warning("Road distance lookup failed, using straight line: %s", exc)
            return straight_line_leg(start, end)

    def _heuristic_bonus(
        self,
        candidate: CandidateStop,
        max_detour_km: float,
        position_score: float,
        short_route: bool,
    ) -> float:
        weights = self.weights
        stop = candidate.stop
        proximity = (
            1 - candidate.distance_from_path_km / max_detour_km if max_detour_km > 0 else 0.0
        )
        availability = stop.available_points / max(1, stop.total_points)
        price = 1 - stop.price_per_kwh / weights.max_price_per_kwh
        rating = stop.rating / weights.max_rating if stop.rating else weights.default_rating_factor
        distribution = 1 / (1 + position_score)

        bonus = weights.short_route_bonus if short_route else weights.long_route_bonus
        total = (
            proximity * bonus.proximity
            + availability * bonus.availability
            + price * bonus.price
            + rating * bonus.rating
            + distribution * bonus.distribution
        )
        return total * bonus.scale

    def _same_place(self, node: SearchNode, other: SearchNode) -> bool:
        if haversine_km(node.point, other.point) >= self.weights.duplicate_radius_km:
            return False
        if node.candidate is None or other.candidate is None:
            return True
        return node.candidate.station_id == other.candidate.station_id


def count_stops(nodes: list[SearchNode], index: int) -> int:
    count = 0
    current: int | None = index
    while current is not None:
        node = nodes[current]
        if node.candidate is not None:
            count += 1
        current = node.parent
    return count


def distance_travelled(nodes: list[SearchNode], index: int) -> float:
    total = 0.0
    node = nodes[index]
    while node.parent is not None:
        total += node.road_distance_km
        node = nodes[node.parent]
    return total
