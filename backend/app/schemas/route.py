from pydantic import BaseModel


class RouteInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    stop_count: int
    advanceable: bool


class StopView(BaseModel):
    id: int
    route_id: str
    name: str
    lat: float
    lon: float
    sequence_order: int
