from pydantic import BaseModel, Field


class FareRequest(BaseModel):
    source_lat: float = Field(ge=-90, le=90)
    source_lon: float = Field(ge=-180, le=180)
    dest_lat: float = Field(ge=-90, le=90)
    dest_lon: float = Field(ge=-180, le=180)


class FareEstimate(BaseModel):
    distance_km: float
    base_fare: float
    per_km_fare: float
    total_fare: int
