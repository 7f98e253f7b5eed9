"""Read-only projections of fleet state and route topology for the API."""

import logging

from app.core.fare_calculator import FareCalculator
from app.core.fleet_state import VehicleRecord
from app.core.geo import Coordinate, distance, is_near
from app.core.route_index import PathPoint, StopRecord
from app.core.simulator import FleetSimulator
from app.schemas.fare import FareEstimate
from app.schemas.route import RouteInfo, StopView
from app.schemas.vehicle import NearestStopInfo, PathPointInfo, VehicleView

logger = logging.getLogger(__name__)


def _stop_view(s: StopRecord) -> StopView:
    return StopView(
        id=s.id,
        route_id=s.route_id,
        name=s.name,
        lat=s.coordinate.lat,
        lon=s.coordinate.lon,
        sequence_order=s.sequence_order,
    )


class QueryService:
    """Lookups return None for unknown ids; callers decide how to report it."""

    def __init__(
        self,
        simulator: FleetSimulator,
        fares: FareCalculator | None = None,
        stop_proximity_m: float = 200.0,
    ) -> None:
        self.simulator = simulator
        self.fares = fares or FareCalculator()
        self.stop_proximity_m = stop_proximity_m

    def list_vehicles(self, route_id: str | None = None) -> list[VehicleView]:
        records = self.simulator.fleet.snapshot().values()
        if route_id:
            records = [r for r in records if r.route_id == route_id]
        return [self._vehicle_view(r) for r in records]

    def get_vehicle(self, vehicle_id: str) -> VehicleView | None:
        record = self.simulator.fleet.get(vehicle_id)
        if record is None:
            return None
        return self._vehicle_view(record)

    def get_route_stops(self, route_id: str) -> list[StopView] | None:
        stops = self.simulator.routes.stops(route_id)
        if not stops:
            return None
        return [_stop_view(s) for s in stops]

    def list_routes(self) -> list[RouteInfo]:
        return [
            RouteInfo(
                id=r.route.id,
                name=r.route.name,
                description=r.route.description,
                stop_count=len(r.stops),
                advanceable=r.advanceable,
            )
            for r in self.simulator.routes.routes()
        ]

    def list_stops(self, route_id: str | None = None) -> list[StopView]:
        return [_stop_view(s) for s in self.simulator.routes.stops(route_id)]

    def estimate_fare(self, origin: Coordinate, destination: Coordinate) -> FareEstimate:
        quote = self.fares.quote(origin, destination)
        return FareEstimate(
            distance_km=quote.distance_km,
            base_fare=quote.base_fare,
            per_km_fare=quote.per_km_fare,
            total_fare=quote.total_fare,
        )

    def estimate_fare_between_stops(self, from_stop: int, to_stop: int) -> FareEstimate | None:
        a = self.simulator.routes.get_stop(from_stop)
        b = self.simulator.routes.get_stop(to_stop)
        if a is None or b is None:
            return None
        return self.estimate_fare(a.coordinate, b.coordinate)

    def _vehicle_view(self, record: VehicleRecord) -> VehicleView:
        path = self.simulator.routes.path_for(record.route_id)
        return VehicleView(
            id=record.id,
            bus_number=record.bus_number,
            route=self.simulator.routes.route_name(record.route_id),
            route_id=record.route_id,
            destination=record.destination or "Unknown",
            lat=record.coordinate.lat,
            lon=record.coordinate.lon,
            speed=round(record.speed, 1),
            status=record.status.value,
            ticket_price=record.ticket_price,
            path=[
                PathPointInfo(name=p.name, lat=p.coordinate.lat, lon=p.coordinate.lon)
                for p in path
            ],
            nearest_stop=self._nearest_stop(record.coordinate, path),
            updated_at=record.updated_at.isoformat() if record.updated_at else None,
        )

    def _nearest_stop(self, position: Coordinate, path: list[PathPoint]) -> NearestStopInfo | None:
        if not path:
            return None
        nearest = min(path, key=lambda p: distance(position, p.coordinate))
        d = distance(position, nearest.coordinate)
        return NearestStopInfo(
            name=nearest.name,
            distance_m=round(d, 1),
            at_stop=is_near(position, nearest.coordinate, self.stop_proximity_m),
        )
