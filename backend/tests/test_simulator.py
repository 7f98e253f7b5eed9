"""Tests for the FleetSimulator tick."""

import asyncio
import random

import pytest

from app.core import simulator as simulator_module
from app.core.exceptions import LoadFailure
from app.core.fleet_state import VehicleStatus
from app.core.fleet_store import RawVehicle, Roster
from app.core.geo import Coordinate, distance
from app.core.route_index import RouteRecord, StopRecord
from app.core.simulator import FleetSimulator, SimulationPolicy, nearest_waypoint, next_target

from conftest import CENTRAL_STATION, SILK_BOARD, FakeStore, make_roster, make_simulator


def bus(vehicle_id: str, route_id: str | None, lat=None, lon=None, speed=30.0, status="Running") -> RawVehicle:
    return RawVehicle(
        id=vehicle_id, route_id=route_id, bus_number=vehicle_id.upper(),
        lat=lat, lon=lon, speed=speed, status=status,
    )


def triangle_roster(vehicles) -> Roster:
    """Route with three stops ~1.1 km apart."""
    stops = [
        StopRecord(1, "tri", "A", Coordinate(12.970, 77.590), 1),
        StopRecord(2, "tri", "B", Coordinate(12.980, 77.590), 2),
        StopRecord(3, "tri", "C", Coordinate(12.980, 77.600), 3),
    ]
    return Roster(routes=[RouteRecord("tri", "Triangle")], stops=stops, vehicles=vehicles)


def test_end_to_end_single_tick():
    sim = make_simulator()
    before = sim.fleet.get("bus-1")
    assert before.coordinate == SILK_BOARD

    report = asyncio.run(sim.tick())

    after = sim.fleet.get("bus-1")
    assert report.moved == 1
    assert after.speed == 36
    assert after.status is VehicleStatus.RUNNING
    # 36 km/h for 5 s = 50 m
    assert distance(SILK_BOARD, after.coordinate) == pytest.approx(50, abs=0.5)
    assert distance(after.coordinate, CENTRAL_STATION) == pytest.approx(
        distance(SILK_BOARD, CENTRAL_STATION) - 50, abs=0.5,
    )
    assert after.updated_at is not None
    assert sim.store.saved["bus-1"] == after


def test_zero_ticks_leave_state_untouched():
    sim = make_simulator()
    record = sim.fleet.get("bus-1")
    assert record.coordinate == Coordinate(12.9352, 77.6245)
    assert record.speed == 36
    assert record.status is VehicleStatus.RUNNING
    assert record.updated_at is None
    assert sim.tick_count == 0
    assert sim.last_report is None
    assert sim.store.saved == {}


def test_tick_moves_strictly_closer_from_each_stop():
    roster = triangle_roster([
        bus("at-a", "tri", 12.970, 77.590),
        bus("at-b", "tri", 12.980, 77.590),
    ])
    sim = make_simulator(roster)
    asyncio.run(sim.tick())

    a, b, c = (p.coordinate for p in sim.routes.path_for("tri"))
    assert distance(sim.fleet.get("at-a").coordinate, b) < distance(a, b)
    assert distance(sim.fleet.get("at-b").coordinate, c) < distance(b, c)


def test_last_stop_wraps_to_first():
    sim = make_simulator(triangle_roster([bus("at-c", "tri", 12.980, 77.600)]))
    asyncio.run(sim.tick())

    a, _, c = (p.coordinate for p in sim.routes.path_for("tri"))
    moved = sim.fleet.get("at-c").coordinate
    assert distance(moved, a) < distance(c, a)


def test_lands_exactly_on_waypoint_when_travel_exceeds_segment():
    stops = [
        StopRecord(1, "short", "A", Coordinate(12.9700, 77.5900), 1),
        StopRecord(2, "short", "B", Coordinate(12.9702, 77.5900), 2),
    ]
    roster = Roster(
        routes=[RouteRecord("short", "Short hop")], stops=stops,
        vehicles=[bus("bus-1", "short", 12.9700, 77.5900, speed=50)],
    )
    # ~22 m segment, 50 km/h for 5 s covers ~69 m
    sim = make_simulator(roster)
    asyncio.run(sim.tick())
    assert sim.fleet.get("bus-1").coordinate == Coordinate(12.9702, 77.5900)


def test_duplicate_waypoints_do_not_stall_vehicle():
    # Koramangala shares Silk Board's coordinates
    stops = [
        StopRecord(1, "dup", "Silk Board", SILK_BOARD, 1),
        StopRecord(2, "dup", "Koramangala", SILK_BOARD, 2),
        StopRecord(3, "dup", "Central Station", CENTRAL_STATION, 3),
    ]
    roster = Roster(
        routes=[RouteRecord("dup", "Duplicates")], stops=stops,
        vehicles=[bus("bus-1", "dup", SILK_BOARD.lat, SILK_BOARD.lon, speed=36)],
    )
    sim = make_simulator(roster)

    async def run():
        for _ in range(3):
            await sim.tick()

    asyncio.run(run())
    moved = sim.fleet.get("bus-1").coordinate
    assert distance(SILK_BOARD, moved) == pytest.approx(150, abs=1.5)
    assert distance(moved, CENTRAL_STATION) < distance(SILK_BOARD, CENTRAL_STATION)


def test_route_of_identical_points_keeps_vehicle_in_place():
    stops = [StopRecord(i, "same", f"S{i}", SILK_BOARD, i) for i in range(1, 4)]
    roster = Roster(
        routes=[RouteRecord("same", "Same place")], stops=stops,
        vehicles=[bus("bus-1", "same", SILK_BOARD.lat, SILK_BOARD.lon)],
    )
    sim = make_simulator(roster)
    report = asyncio.run(sim.tick())
    assert report.moved == 1
    assert sim.fleet.get("bus-1").coordinate == SILK_BOARD


def test_speed_stays_bounded_random_walk():
    store = FakeStore(make_roster())
    sim = FleetSimulator(store, SimulationPolicy(), rng=random.Random(7))
    sim.load_roster(store.roster)

    speeds = [sim.fleet.get("bus-1").speed]

    async def run():
        for _ in range(200):
            await sim.tick()
            speeds.append(sim.fleet.get("bus-1").speed)

    asyncio.run(run())
    assert all(15 <= s <= 50 for s in speeds)
    assert all(abs(b - a) <= 5 for a, b in zip(speeds, speeds[1:]))
    assert len(set(speeds)) > 10


@pytest.mark.parametrize("offset, expected", [(+5, 50), (-5, 15)])
def test_speed_clamped_to_bounds(offset, expected):
    start = 48 if offset > 0 else 17
    roster = make_roster(vehicles=[bus("bus-1", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=start)])
    sim = make_simulator(roster, offset=offset)
    asyncio.run(sim.tick())
    assert sim.fleet.get("bus-1").speed == expected


def test_status_from_stillness_threshold():
    roster = make_roster(vehicles=[
        bus("slow", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=1.5, status="Running"),
        bus("fast", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=2.5, status="Stopped"),
    ])
    sim = make_simulator(roster, speed_min_kmh=0)
    asyncio.run(sim.tick())
    assert sim.fleet.get("slow").status is VehicleStatus.STOPPED
    assert sim.fleet.get("fast").status is VehicleStatus.RUNNING


def test_maintenance_vehicle_untouched():
    roster = make_roster(vehicles=[
        bus("bus-1", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=20, status="Maintenance"),
    ])
    sim = make_simulator(roster, offset=3)
    before = sim.fleet.get("bus-1")

    report = asyncio.run(sim.tick())

    assert sim.fleet.get("bus-1") == before
    assert report.skipped == 1
    assert "bus-1" not in sim.store.saved


def test_single_stop_route_never_moves():
    roster = make_roster(vehicles=[bus("bus-2", "route-2", 12.99, 77.61, speed=40)])
    sim = make_simulator(roster)
    before = sim.fleet.get("bus-2")

    async def run():
        for _ in range(5):
            await sim.tick()

    asyncio.run(run())
    assert sim.fleet.get("bus-2") == before


def test_unknown_route_vehicle_not_advanced_and_reported():
    roster = make_roster(vehicles=[
        bus("bus-1", "route-1", SILK_BOARD.lat, SILK_BOARD.lon),
        bus("orphan", "route-404", 12.9, 77.6),
    ])
    sim = make_simulator(roster)
    before = sim.fleet.get("orphan")

    report = asyncio.run(sim.tick())

    assert sim.fleet.get("orphan") == before
    assert report.moved == 1
    assert report.skipped == 1
    assert sim.get_diagnostics()["unresolved_vehicles"] == ["orphan"]


def test_missing_position_and_speed_use_defaults():
    roster = make_roster(vehicles=[bus("fresh", "route-1", speed=None, status=None)])
    sim = make_simulator(roster)
    record = sim.fleet.get("fresh")
    assert record.coordinate == SILK_BOARD
    assert record.speed == 30
    assert record.status is VehicleStatus.STOPPED


def test_stored_speed_outside_bounds_starts_within_them():
    roster = make_roster(vehicles=[
        bus("parked", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=0, status="Stopped"),
        bus("speeding", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=80),
        bus("crawling", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=3),
    ])
    sim = make_simulator(roster)
    loaded = {vid: sim.fleet.get(vid).speed for vid in ("parked", "speeding", "crawling")}
    assert loaded == {"parked": 30, "speeding": 50, "crawling": 15}

    asyncio.run(sim.tick())

    for vid, before in loaded.items():
        after = sim.fleet.get(vid).speed
        assert 15 <= after <= 50
        assert abs(after - before) <= 5


def test_parked_vehicle_steps_at_most_variation_on_first_tick():
    roster = make_roster(vehicles=[
        bus("parked", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, speed=0, status="Stopped"),
    ])
    sim = make_simulator(roster, offset=-5)
    asyncio.run(sim.tick())
    record = sim.fleet.get("parked")
    assert record.speed == 25
    assert record.status is VehicleStatus.RUNNING


def test_out_of_range_stored_position_starts_at_first_stop():
    roster = make_roster(vehicles=[bus("lost", "route-1", 123.0, 77.6)])
    sim = make_simulator(roster)
    assert sim.fleet.get("lost").coordinate == SILK_BOARD


def test_unknown_status_treated_as_stopped():
    roster = make_roster(vehicles=[bus("odd", "route-1", SILK_BOARD.lat, SILK_BOARD.lon, status="Parked")])
    sim = make_simulator(roster)
    assert sim.fleet.get("odd").status is VehicleStatus.STOPPED


def test_write_failure_isolated_and_memory_authoritative():
    roster = make_roster(vehicles=[
        bus("bus-1", "route-1", SILK_BOARD.lat, SILK_BOARD.lon),
        bus("bus-2", "route-1", SILK_BOARD.lat, SILK_BOARD.lon),
    ])
    store = FakeStore(roster, fail_ids={"bus-2"})
    sim = make_simulator(store=store)

    report = asyncio.run(sim.tick())

    assert report.moved == 2
    assert report.write_failures == 1
    assert "bus-1" in store.saved
    assert "bus-2" not in store.saved
    # The failed vehicle still advanced in memory
    assert sim.fleet.get("bus-2").coordinate != SILK_BOARD
    assert sim.total_write_failures == 1


def test_write_timeout_counts_as_failure():
    store = FakeStore(make_roster(), delay=0.2)
    sim = make_simulator(store=store, store_timeout_seconds=0.01)

    report = asyncio.run(sim.tick())

    assert report.write_failures == 1
    assert store.saved == {}
    assert sim.fleet.get("bus-1").coordinate != SILK_BOARD


def test_concurrent_writes_capped():
    vehicles = [bus(f"bus-{i}", "route-1", SILK_BOARD.lat, SILK_BOARD.lon) for i in range(8)]
    store = FakeStore(make_roster(vehicles=vehicles), delay=0.01)
    sim = make_simulator(store=store, store_concurrency=3)

    report = asyncio.run(sim.tick())

    assert report.write_failures == 0
    assert len(store.saved) == 8
    assert 1 < store.max_in_flight <= 3


def test_compute_failure_does_not_stop_fleet(monkeypatch):
    roster = make_roster(vehicles=[
        bus("bad", "route-1", SILK_BOARD.lat, SILK_BOARD.lon),
        bus("good", "route-1", SILK_BOARD.lat, SILK_BOARD.lon),
    ])
    sim = make_simulator(roster)
    real_advance = simulator_module.advance

    def flaky_advance(record, *args):
        if record.id == "bad":
            raise ValueError("boom")
        return real_advance(record, *args)

    monkeypatch.setattr(simulator_module, "advance", flaky_advance)
    report = asyncio.run(sim.tick())

    assert report.compute_failures == 1
    assert report.moved == 1
    assert sim.fleet.get("bad").coordinate == SILK_BOARD
    assert sim.fleet.get("good").coordinate != SILK_BOARD


def test_empty_roster_idles():
    sim = make_simulator(Roster())
    report = asyncio.run(sim.tick())
    assert report.moved == 0
    assert report.skipped == 0
    assert sim.tick_count == 1


def test_load_failure_propagates():
    class BrokenStore(FakeStore):
        async def load_roster(self):
            raise LoadFailure("database down")

    sim = FleetSimulator(BrokenStore(), SimulationPolicy())
    with pytest.raises(LoadFailure):
        asyncio.run(sim.load())
    assert not sim.loaded


def test_load_reads_roster_from_store():
    store = FakeStore(make_roster())
    sim = FleetSimulator(store, SimulationPolicy())
    asyncio.run(sim.load())
    assert sim.loaded
    assert sim.fleet.get("bus-1") is not None
    assert sim.routes.is_advanceable("route-1")


def test_nearest_waypoint_first_occurrence_wins():
    roster = make_roster()
    sim = make_simulator(roster)
    path = sim.routes.path_for("route-1") * 2
    assert nearest_waypoint(CENTRAL_STATION, path) == 1
    assert next_target(path, 1) == 2


def test_diagnostics_after_tick():
    sim = make_simulator()
    asyncio.run(sim.tick())
    diag = sim.get_diagnostics()
    assert diag["tick_count"] == 1
    assert diag["non_advanceable_routes"] == ["route-2"]
    assert diag["last_tick"]["number"] == 1
    assert diag["last_tick"]["moved"] == 1
    assert diag["last_tick"]["write_failures"] == 0
