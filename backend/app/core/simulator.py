"""Tick engine: advances every vehicle along its route and persists the result."""

import asyncio
import datetime
import logging
import random
import time
from dataclasses import dataclass

from app.core.exceptions import RouteResolutionGap, TickWriteFailure
from app.core.fleet_state import FleetState, VehicleRecord, VehicleStatus
from app.core.fleet_store import FleetStore, RawVehicle, Roster
from app.core.geo import Coordinate, distance, interpolate, is_valid_coordinate
from app.core.route_index import PathPoint, RouteIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationPolicy:
    tick_interval_ms: int = 5000
    speed_min_kmh: float = 15.0
    speed_max_kmh: float = 50.0
    speed_variation_kmh: float = 5.0
    initial_speed_kmh: float = 30.0
    stillness_threshold_kmh: float = 2.0
    store_timeout_seconds: float = 2.0
    store_concurrency: int = 4

    @classmethod
    def from_settings(cls, settings) -> "SimulationPolicy":
        return cls(
            tick_interval_ms=settings.tick_interval_ms,
            speed_min_kmh=settings.speed_min_kmh,
            speed_max_kmh=settings.speed_max_kmh,
            speed_variation_kmh=settings.speed_variation_kmh,
            initial_speed_kmh=settings.initial_speed_kmh,
            stillness_threshold_kmh=settings.stillness_threshold_kmh,
            store_timeout_seconds=settings.store_timeout_seconds,
            store_concurrency=settings.store_concurrency,
        )

    @property
    def tick_seconds(self) -> float:
        return self.tick_interval_ms / 1000


@dataclass
class TickReport:
    started_at: datetime.datetime
    number: int = 0
    duration_ms: float = 0.0
    moved: int = 0
    skipped: int = 0
    compute_failures: int = 0
    write_failures: int = 0

    def as_dict(self) -> dict:
        return {
            "number": self.number,
            "started_at": self.started_at.isoformat(),
            "duration_ms": round(self.duration_ms, 1),
            "moved": self.moved,
            "skipped": self.skipped,
            "compute_failures": self.compute_failures,
            "write_failures": self.write_failures,
        }


def nearest_waypoint(position: Coordinate, path: list[PathPoint]) -> int:
    """Index of the closest waypoint; the first one wins on ties."""
    best_idx = 0
    best_dist = float("inf")
    for i, point in enumerate(path):
        d = distance(position, point.coordinate)
        if d < best_dist:
            best_dist = d
            best_idx = i
    return best_idx


def next_target(path: list[PathPoint], current: int) -> int | None:
    """Waypoint after `current`, wrapping from the last stop to the first.

    Waypoints at the same coordinate as `current` are passed over, so
    consecutive stops sharing a location cannot pin a vehicle in place or
    pull it back. Returns None when every waypoint shares that location.
    """
    origin = path[current].coordinate
    n = len(path)
    idx = (current + 1) % n
    for _ in range(n - 1):
        if distance(origin, path[idx].coordinate) > 0:
            return idx
        idx = (idx + 1) % n
    return None


def advance(
    record: VehicleRecord,
    path: list[PathPoint],
    policy: SimulationPolicy,
    rng: random.Random,
) -> tuple[Coordinate, float, VehicleStatus]:
    """Compute one tick for one vehicle: new position, speed and status."""
    variation = rng.uniform(-policy.speed_variation_kmh, policy.speed_variation_kmh)
    speed = min(policy.speed_max_kmh, max(policy.speed_min_kmh, record.speed + variation))

    position = record.coordinate
    current = nearest_waypoint(position, path)
    target = next_target(path, current)

    if target is not None:
        waypoint = path[target].coordinate
        travel_m = speed / 3.6 * policy.tick_seconds
        remaining_m = distance(position, waypoint)
        if remaining_m > 0:
            progress = min(1.0, travel_m / remaining_m)
            if progress >= 1.0:
                position = waypoint
            else:
                position = interpolate(position, waypoint, progress)

    status = VehicleStatus.RUNNING if speed > policy.stillness_threshold_kmh else VehicleStatus.STOPPED
    return position, speed, status


class FleetSimulator:
    """Owns the route index and fleet state; `tick()` is the only writer."""

    def __init__(
        self,
        store: FleetStore,
        policy: SimulationPolicy | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if policy is None:
            from app.config import settings
            policy = SimulationPolicy.from_settings(settings)
        self.store = store
        self.policy = policy
        self.rng = rng or random.Random()

        self.routes = RouteIndex()
        self.fleet = FleetState()
        self.loaded = False

        self._tick_lock = asyncio.Lock()
        # Vehicle ids whose route could not be resolved (logged once each)
        self._unresolved: set[str] = set()

        self.tick_count = 0
        self.total_write_failures = 0
        self.last_report: TickReport | None = None

    async def load(self) -> None:
        """Read the roster from storage. LoadFailure propagates to the caller."""
        roster = await self.store.load_roster()
        self.load_roster(roster)

    def load_roster(self, roster: Roster) -> None:
        self.routes = RouteIndex.build(roster.stops, roster.routes)
        self._unresolved = set()
        self.fleet = FleetState([self._initial_record(rv) for rv in roster.vehicles])
        self.loaded = True
        logger.info(
            "Simulation loaded: %d vehicles on %d routes (%d not advanceable)",
            len(self.fleet), len(self.routes.routes()), len(self.routes.non_advanceable_routes()),
        )

    def _initial_record(self, rv: RawVehicle) -> VehicleRecord:
        if not self.routes.has_route(rv.route_id):
            logger.warning("%s - vehicle will not move", RouteResolutionGap("Vehicle", rv.id, rv.route_id))
            self._unresolved.add(rv.id)

        path = self.routes.path_for(rv.route_id)
        coordinate = None
        if rv.lat is not None and rv.lon is not None:
            if is_valid_coordinate(rv.lat, rv.lon):
                coordinate = Coordinate(rv.lat, rv.lon)
            else:
                logger.warning("Vehicle %s: stored position (%s, %s) out of range, ignoring", rv.id, rv.lat, rv.lon)
        if coordinate is None:
            coordinate = path[0].coordinate if path else Coordinate(0.0, 0.0)

        try:
            status = VehicleStatus(rv.status) if rv.status else VehicleStatus.STOPPED
        except ValueError:
            logger.warning("Vehicle %s: unknown status %r, treating as Stopped", rv.id, rv.status)
            status = VehicleStatus.STOPPED

        # A parked bus is stored at 0 km/h; it pulls away at the initial speed
        speed = rv.speed if rv.speed and rv.speed > 0 else self.policy.initial_speed_kmh
        speed = min(self.policy.speed_max_kmh, max(self.policy.speed_min_kmh, speed))

        return VehicleRecord(
            id=rv.id,
            route_id=rv.route_id,
            bus_number=rv.bus_number,
            destination=rv.destination,
            ticket_price=rv.ticket_price,
            coordinate=coordinate,
            speed=speed,
            status=status,
        )

    async def tick(self) -> TickReport:
        """Advance the whole fleet once. Never raises for per-vehicle problems."""
        async with self._tick_lock:
            started = time.monotonic()
            now = datetime.datetime.now(datetime.timezone.utc)
            report = TickReport(started_at=now)

            updated: list[VehicleRecord] = []
            for vid, record in self.fleet.snapshot().items():
                if record.status is VehicleStatus.MAINTENANCE or not self.routes.is_advanceable(record.route_id):
                    report.skipped += 1
                    continue
                try:
                    coordinate, speed, status = advance(
                        record, self.routes.path_for(record.route_id), self.policy, self.rng,
                    )
                    updated.append(self.fleet.apply_update(vid, coordinate, speed, status, now))
                except Exception:
                    logger.exception("Vehicle %s: tick computation failed", vid)
                    report.compute_failures += 1

            report.moved = len(updated)
            report.write_failures = await self._write_back(updated)

            report.duration_ms = (time.monotonic() - started) * 1000
            self.tick_count += 1
            report.number = self.tick_count
            self.total_write_failures += report.write_failures
            self.last_report = report

            if report.duration_ms > self.policy.tick_interval_ms:
                logger.warning(
                    "Tick took %.0fms, longer than the %dms period",
                    report.duration_ms, self.policy.tick_interval_ms,
                )
            logger.debug(
                "Tick %d: moved=%d skipped=%d compute_failures=%d write_failures=%d (%.1fms)",
                report.number, report.moved, report.skipped,
                report.compute_failures, report.write_failures, report.duration_ms,
            )
            return report

    async def _write_back(self, records: list[VehicleRecord]) -> int:
        """Persist records concurrently; returns the number of failed writes.

        Memory already holds these records, so a failed write only leaves
        storage behind until the vehicle's next successful write.
        """
        if not records:
            return 0
        slots = asyncio.Semaphore(max(1, self.policy.store_concurrency))

        async def write(record: VehicleRecord) -> bool:
            async with slots:
                try:
                    await asyncio.wait_for(
                        self.store.save_vehicle_state(record),
                        timeout=self.policy.store_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    failure = TickWriteFailure(
                        record.id, f"timed out after {self.policy.store_timeout_seconds}s",
                    )
                    logger.warning("%s", failure)
                    return False
                except Exception as exc:
                    logger.warning("%s", TickWriteFailure(record.id, repr(exc)))
                    return False
            return True

        results = await asyncio.gather(*(write(r) for r in records))
        return sum(1 for ok in results if not ok)

    def get_diagnostics(self) -> dict:
        report = self.last_report
        return {
            "loaded": self.loaded,
            "tick_interval_ms": self.policy.tick_interval_ms,
            "tick_count": self.tick_count,
            "total_vehicles": len(self.fleet),
            "total_routes": len(self.routes.routes()),
            "non_advanceable_routes": self.routes.non_advanceable_routes(),
            "unresolved_vehicles": sorted(self._unresolved),
            "dropped_stops": list(self.routes.dropped_stops),
            "total_write_failures": self.total_write_failures,
            "last_tick": None if report is None else report.as_dict(),
        }
