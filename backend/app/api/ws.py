"""WebSocket feed of simulated vehicle positions, optionally narrowed to one route."""

import asyncio
import logging

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Will be set by main.py on startup
broadcaster = None
queries = None


def _only_route(payload: dict, route_id: str | None) -> dict:
    if route_id is not None:
        payload["vehicles"] = [v for v in payload.get("vehicles", []) if v.get("route_id") == route_id]
    return payload


async def _initial_snapshot(route_id: str | None) -> dict:
    cached = await broadcaster.get_current_state()
    if cached:
        payload = orjson.loads(cached)
    else:
        # Nothing published yet (first tick pending)
        payload = {"vehicles": [v.model_dump(mode="json") for v in queries.list_vehicles()]}
    payload["type"] = "snapshot"
    return _only_route(payload, route_id)


@router.websocket("/ws/vehicles")
async def vehicle_ws(websocket: WebSocket, route: str | None = None) -> None:
    """One snapshot on connect, then an update per simulation tick."""
    await websocket.accept()
    if broadcaster is None or queries is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    await websocket.send_bytes(orjson.dumps(await _initial_snapshot(route)))

    updates = broadcaster.subscribe()
    try:
        while True:
            message = await updates.get()
            if route is not None:
                message = orjson.dumps(_only_route(orjson.loads(message), route))
            await websocket.send_bytes(message)
    except (WebSocketDisconnect, asyncio.CancelledError):
        logger.debug("WebSocket client left (route=%s)", route)
    except Exception:
        logger.exception("WebSocket stream failed")
    finally:
        broadcaster.unsubscribe(updates)
