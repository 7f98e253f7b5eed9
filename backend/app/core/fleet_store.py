"""Durable storage for the fleet: roster load at startup, per-vehicle write-back."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select, text

from app.core.exceptions import LoadFailure
from app.core.fleet_state import VehicleRecord
from app.core.geo import Coordinate
from app.core.route_index import RouteRecord, StopRecord
from app.models.tables import Route, Stop, Vehicle

logger = logging.getLogger(__name__)


@dataclass
class RawVehicle:
    id: str
    route_id: str | None
    bus_number: str
    destination: str = ""
    ticket_price: float = 0.0
    lat: float | None = None
    lon: float | None = None
    speed: float | None = None
    status: str | None = None


@dataclass
class Roster:
    routes: list[RouteRecord] = field(default_factory=list)
    stops: list[StopRecord] = field(default_factory=list)
    vehicles: list[RawVehicle] = field(default_factory=list)


class FleetStore:
    """Reads the roster and writes vehicle state through SQLAlchemy sessions."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def load_roster(self) -> Roster:
        """Read routes, stops and vehicles. Raises LoadFailure on any error."""
        try:
            async with self.session_factory() as session:
                routes = (await session.execute(select(Route).order_by(Route.id))).scalars().all()
                stops = (await session.execute(
                    select(Stop).order_by(Stop.route_id, Stop.sequence_order)
                )).scalars().all()
                vehicles = (await session.execute(select(Vehicle).order_by(Vehicle.id))).scalars().all()
        except Exception as exc:
            raise LoadFailure(f"Could not load fleet roster: {exc}") from exc

        roster = Roster(
            routes=[RouteRecord(id=r.id, name=r.name, description=r.description or "") for r in routes],
            stops=[
                StopRecord(
                    id=s.id,
                    route_id=s.route_id,
                    name=s.name,
                    coordinate=Coordinate(s.lat, s.lon),
                    sequence_order=s.sequence_order,
                )
                for s in stops
            ],
            vehicles=[
                RawVehicle(
                    id=v.id,
                    route_id=v.route_id,
                    bus_number=v.bus_number,
                    destination=v.destination or "",
                    ticket_price=v.ticket_price or 0.0,
                    lat=v.lat,
                    lon=v.lon,
                    speed=v.speed,
                    status=v.status,
                )
                for v in vehicles
            ],
        )
        logger.info(
            "Loaded roster: %d routes, %d stops, %d vehicles",
            len(roster.routes), len(roster.stops), len(roster.vehicles),
        )
        return roster

    async def save_vehicle_state(self, record: VehicleRecord) -> None:
        """Write one vehicle's simulated fields back. Errors propagate to the caller."""
        async with self.session_factory() as session:
            await session.execute(
                text("""
                    UPDATE vehicles
                    SET lat = :lat, lon = :lon, speed = :speed,
                        status = :status, updated_at = :ts
                    WHERE id = :vid
                """),
                {
                    "vid": record.id,
                    "lat": record.coordinate.lat,
                    "lon": record.coordinate.lon,
                    "speed": record.speed,
                    "status": record.status.value,
                    "ts": record.updated_at,
                },
            )
            await session.commit()
