"""Shared fakes for simulator, query and API tests."""

import asyncio
import random

import pytest

from app.core.fleet_store import RawVehicle, Roster
from app.core.geo import Coordinate
from app.core.route_index import RouteRecord, StopRecord
from app.core.simulator import FleetSimulator, SimulationPolicy

# Silk Board -> Central Station, about 5.2 km apart
SILK_BOARD = Coordinate(12.9352, 77.6245)
CENTRAL_STATION = Coordinate(12.9716, 77.5946)


class FixedRandom(random.Random):
    """uniform() always returns the same offset."""

    def __init__(self, offset: float = 0.0) -> None:
        super().__init__(0)
        self.offset = offset

    def uniform(self, a, b):
        return self.offset


class FakeStore:
    """In-memory stand-in for FleetStore."""

    def __init__(self, roster: Roster | None = None, fail_ids=(), delay: float = 0.0) -> None:
        self.roster = roster or Roster()
        self.fail_ids = set(fail_ids)
        self.delay = delay
        self.saved: dict = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def load_roster(self) -> Roster:
        return self.roster

    async def save_vehicle_state(self, record) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if record.id in self.fail_ids:
                raise ConnectionError("database unavailable")
            self.saved[record.id] = record
        finally:
            self.in_flight -= 1


def make_roster(vehicles=None, extra_stops=(), extra_routes=()) -> Roster:
    routes = [
        RouteRecord(id="route-1", name="Route A: Airport Express"),
        RouteRecord(id="route-2", name="Route B: Lonely"),
        *extra_routes,
    ]
    stops = [
        StopRecord(id=1, route_id="route-1", name="Silk Board", coordinate=SILK_BOARD, sequence_order=1),
        StopRecord(id=2, route_id="route-1", name="Central Station", coordinate=CENTRAL_STATION, sequence_order=2),
        StopRecord(id=3, route_id="route-2", name="Only Stop", coordinate=Coordinate(12.98, 77.60), sequence_order=1),
        *extra_stops,
    ]
    if vehicles is None:
        vehicles = [
            RawVehicle(id="bus-1", route_id="route-1", bus_number="KA-01-A-1001",
                       destination="Bangalore Airport", ticket_price=50,
                       lat=SILK_BOARD.lat, lon=SILK_BOARD.lon, speed=36, status="Running"),
        ]
    return Roster(routes=routes, stops=stops, vehicles=vehicles)


def make_simulator(roster: Roster | None = None, store: FakeStore | None = None,
                   offset: float = 0.0, **policy) -> FleetSimulator:
    store = store or FakeStore(roster or make_roster())
    sim = FleetSimulator(store, SimulationPolicy(**policy), rng=FixedRandom(offset))
    sim.load_roster(store.roster)
    return sim


@pytest.fixture
def simulator() -> FleetSimulator:
    return make_simulator()
