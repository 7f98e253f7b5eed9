"""Vehicle REST API endpoints."""

from fastapi import APIRouter, HTTPException

from app.schemas.vehicle import VehicleView

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])

# Will be set by main.py
queries = None


@router.get("", response_model=list[VehicleView])
async def list_vehicles(route: str | None = None):
    """Get every vehicle with its route name and polyline."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return queries.list_vehicles(route_id=route)


@router.get("/{vehicle_id}", response_model=VehicleView)
async def get_vehicle(vehicle_id: str):
    """Get a specific vehicle by ID."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    vehicle = queries.get_vehicle(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle
