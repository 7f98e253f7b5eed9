"""In-memory route topology: route id -> ordered polyline of stops.

Built once from the loaded roster. Stops are ordered by their sequence
number within a route (ties by stop id), which need not start at zero or be
contiguous. Routes with fewer than two stops stay visible to lookups but
cannot be driven along.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from app.core.exceptions import RouteResolutionGap
from app.core.geo import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopRecord:
    id: int
    route_id: str
    name: str
    coordinate: Coordinate
    sequence_order: int


@dataclass(frozen=True)
class RouteRecord:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class PathPoint:
    coordinate: Coordinate
    name: str


@dataclass
class IndexedRoute:
    route: RouteRecord
    stops: list[StopRecord] = field(default_factory=list)

    @property
    def advanceable(self) -> bool:
        return len(self.stops) >= 2


class RouteIndex:
    """Read-mostly lookup of route polylines."""

    def __init__(self) -> None:
        self._routes: dict[str, IndexedRoute] = {}
        self._stops_by_id: dict[int, StopRecord] = {}
        self.dropped_stops: list[int] = []

    @classmethod
    def build(
        cls,
        stops: Iterable[StopRecord],
        routes: Iterable[RouteRecord] = (),
    ) -> "RouteIndex":
        """Group stops by route and sort each group into a polyline.

        When a route roster is given, stops pointing at routes outside it are
        dropped. Without one, every route referenced by a stop is created
        with a placeholder name.
        """
        index = cls()
        known = {r.id: r for r in routes}
        strict = bool(known)
        for route in known.values():
            index._routes[route.id] = IndexedRoute(route=route)

        for stop in stops:
            entry = index._routes.get(stop.route_id)
            if entry is None:
                if strict:
                    gap = RouteResolutionGap("Stop", stop.id, stop.route_id)
                    logger.warning("%s - stop dropped", gap)
                    index.dropped_stops.append(stop.id)
                    continue
                entry = IndexedRoute(route=RouteRecord(id=stop.route_id, name=f"Route {stop.route_id}"))
                index._routes[stop.route_id] = entry
            entry.stops.append(stop)
            index._stops_by_id[stop.id] = stop

        for entry in index._routes.values():
            entry.stops.sort(key=lambda s: (s.sequence_order, s.id))
            if not entry.advanceable:
                logger.warning(
                    "Route %s (%s) has %d stop(s) - excluded from simulation",
                    entry.route.id, entry.route.name, len(entry.stops),
                )

        logger.debug(
            "Route index built: %d routes, %d stops",
            len(index._routes), len(index._stops_by_id),
        )
        return index

    def path_for(self, route_id: str | None) -> list[PathPoint]:
        """Ordered polyline for a route; empty for unknown routes."""
        entry = self._routes.get(route_id) if route_id is not None else None
        if entry is None:
            return []
        return [PathPoint(coordinate=s.coordinate, name=s.name) for s in entry.stops]

    def is_advanceable(self, route_id: str | None) -> bool:
        entry = self._routes.get(route_id) if route_id is not None else None
        return entry is not None and entry.advanceable

    def has_route(self, route_id: str | None) -> bool:
        return route_id is not None and route_id in self._routes

    def get_route(self, route_id: str) -> IndexedRoute | None:
        return self._routes.get(route_id)

    def route_name(self, route_id: str | None) -> str:
        entry = self._routes.get(route_id) if route_id is not None else None
        if entry is None:
            return f"Route {route_id}"
        return entry.route.name

    def routes(self) -> list[IndexedRoute]:
        return sorted(self._routes.values(), key=lambda r: r.route.id)

    def stops(self, route_id: str | None = None) -> list[StopRecord]:
        """All stops in (route, sequence) order, optionally for one route."""
        if route_id is not None:
            entry = self._routes.get(route_id)
            return list(entry.stops) if entry else []
        result = []
        for entry in self.routes():
            result.extend(entry.stops)
        return result

    def get_stop(self, stop_id: int) -> StopRecord | None:
        return self._stops_by_id.get(stop_id)

    def non_advanceable_routes(self) -> list[str]:
        return [r.route.id for r in self.routes() if not r.advanceable]
