"""Route REST API endpoints."""

from fastapi import APIRouter, HTTPException

from app.schemas.route import RouteInfo, StopView

router = APIRouter(prefix="/api/routes", tags=["routes"])

# Will be set by main.py
queries = None


@router.get("", response_model=list[RouteInfo])
async def list_routes():
    """Get all routes with their stop counts."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return queries.list_routes()


@router.get("/{route_id}/stops", response_model=list[StopView])
async def get_route_stops(route_id: str):
    """Get a route's stops in travel order."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    stops = queries.get_route_stops(route_id)
    if stops is None:
        raise HTTPException(status_code=404, detail="No stops found for this route")
    return stops
