"""Authoritative in-memory table of vehicle positions, speeds and statuses."""

import datetime
import enum
import logging
from dataclasses import dataclass, replace

from app.core.geo import Coordinate

logger = logging.getLogger(__name__)


class VehicleStatus(str, enum.Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    MAINTENANCE = "Maintenance"


@dataclass(frozen=True)
class VehicleRecord:
    id: str
    route_id: str | None
    bus_number: str
    destination: str
    ticket_price: float
    coordinate: Coordinate
    speed: float
    status: VehicleStatus
    updated_at: datetime.datetime | None = None


class FleetState:
    """Vehicle records keyed by id.

    Records are immutable and replaced whole, so a reader holding a snapshot
    never sees a vehicle with some fields from one tick and some from the
    next.
    """

    def __init__(self, vehicles: list[VehicleRecord] | None = None) -> None:
        self._vehicles: dict[str, VehicleRecord] = {}
        for v in vehicles or []:
            self._vehicles[v.id] = v

    def __len__(self) -> int:
        return len(self._vehicles)

    def snapshot(self) -> dict[str, VehicleRecord]:
        return dict(self._vehicles)

    def get(self, vehicle_id: str) -> VehicleRecord | None:
        return self._vehicles.get(vehicle_id)

    def apply_update(
        self,
        vehicle_id: str,
        coordinate: Coordinate,
        speed: float,
        status: VehicleStatus,
        timestamp: datetime.datetime,
    ) -> VehicleRecord:
        current = self._vehicles.get(vehicle_id)
        if current is None:
            raise KeyError(vehicle_id)
        updated = replace(
            current,
            coordinate=coordinate,
            speed=speed,
            status=status,
            updated_at=timestamp,
        )
        self._vehicles[vehicle_id] = updated
        return updated
