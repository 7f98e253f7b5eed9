"""Stop REST API endpoints."""

from fastapi import APIRouter, HTTPException

from app.schemas.route import StopView

router = APIRouter(prefix="/api/stops", tags=["stops"])

# Will be set by main.py
queries = None


@router.get("", response_model=list[StopView])
async def list_stops(route_id: str | None = None):
    """Get all stops, optionally only those of one route."""
    if queries is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return queries.list_stops(route_id=route_id)
