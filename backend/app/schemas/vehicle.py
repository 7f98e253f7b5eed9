from pydantic import BaseModel


class PathPointInfo(BaseModel):
    name: str
    lat: float
    lon: float


class NearestStopInfo(BaseModel):
    name: str
    distance_m: float
    at_stop: bool


class VehicleView(BaseModel):
    id: str
    bus_number: str
    route: str
    route_id: str | None = None
    destination: str
    lat: float
    lon: float
    speed: float
    status: str
    ticket_price: float
    path: list[PathPointInfo] = []
    nearest_stop: NearestStopInfo | None = None
    updated_at: str | None = None
