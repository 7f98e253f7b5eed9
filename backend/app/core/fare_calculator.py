"""Distance-based fare estimation."""

import math
from dataclasses import dataclass

from app.core.geo import Coordinate, distance

DEFAULT_BASE_FARE = 10.0
DEFAULT_COST_PER_KM = 5.0


@dataclass(frozen=True)
class FareQuote:
    distance_km: float
    base_fare: float
    per_km_fare: float
    total_fare: int


class FareCalculator:
    """Flat base fare plus a per-kilometre charge, rounded up."""

    def __init__(self, base_fare: float = DEFAULT_BASE_FARE, cost_per_km: float = DEFAULT_COST_PER_KM) -> None:
        self.base_fare = base_fare
        self.cost_per_km = cost_per_km

    def fare(self, distance_km: float) -> int:
        """Never less than the base fare, whatever the distance."""
        return int(max(self.base_fare, math.ceil(self.base_fare + self.cost_per_km * distance_km)))

    def quote(self, origin: Coordinate, destination: Coordinate) -> FareQuote:
        km = distance(origin, destination) / 1000
        return FareQuote(
            distance_km=round(km, 2),
            base_fare=self.base_fare,
            per_km_fare=self.cost_per_km,
            total_fare=self.fare(km),
        )
