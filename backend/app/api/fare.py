"""Fare estimation endpoints."""

from fastapi import APIRouter, HTTPException

from app.core.geo import Coordinate
from app.schemas.fare import FareEstimate, FareRequest

router = APIRouter(prefix="/api/fare", tags=["fare"])

# Will be set by main.py
queries = None


@router.post("", response_model=FareEstimate)
async def estimate_fare(body: FareRequest):
    """Fare between two coordinates."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return queries.estimate_fare(
        Coordinate(body.source_lat, body.source_lon),
        Coordinate(body.dest_lat, body.dest_lon),
    )


@router.get("/estimate", response_model=FareEstimate)
async def estimate_fare_between_stops(from_stop: int, to_stop: int):
    """Fare between two stops, by stop ID."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    estimate = queries.estimate_fare_between_stops(from_stop, to_stop)
    if estimate is None:
        raise HTTPException(status_code=404, detail="Stop not found")
    return estimate
