"""Simulation loop control and diagnostics."""

from fastapi import APIRouter, HTTPException

router = APIRouter(prefix="/api/simulation", tags=["simulation"])

# Will be set by main.py
simulator = None
controller = None


@router.get("")
async def get_simulation_status():
    """Loop state plus counters from the most recent tick."""
    if simulator is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return {
        "running": controller.running if controller else False,
        **simulator.get_diagnostics(),
    }


@router.post("/start")
async def start_simulation():
    if controller is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    changed = controller.start()
    return {"running": controller.running, "changed": changed}


@router.post("/stop")
async def stop_simulation():
    if controller is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    changed = controller.stop()
    return {"running": controller.running, "changed": changed}
