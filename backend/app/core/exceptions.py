"""Errors raised by the simulation core."""


class FleetError(Exception):
    """Base class for simulation errors."""


class LoadFailure(FleetError):
    """The route, stop or vehicle roster could not be read at startup."""


class RouteResolutionGap(FleetError):
    """A vehicle or stop references a route that is not in the index."""

    def __init__(self, kind: str, ref_id: str | int, route_id: str | None) -> None:
        super().__init__(f"{kind} {ref_id} references unknown route {route_id!r}")
        self.kind = kind
        self.ref_id = ref_id
        self.route_id = route_id


class TickWriteFailure(FleetError):
    """Writing one vehicle's tick result to storage failed or timed out."""

    def __init__(self, vehicle_id: str, reason: str) -> None:
        super().__init__(f"Write-back for vehicle {vehicle_id} failed: {reason}")
        self.vehicle_id = vehicle_id
        self.reason = reason
