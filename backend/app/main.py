"""FastAPI application entry point."""

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import fare, routes, simulation, stops, vehicles, ws
from app.config import settings
from app.core.broadcaster import Broadcaster
from app.core.exceptions import LoadFailure
from app.core.fare_calculator import FareCalculator
from app.core.fleet_store import FleetStore
from app.core.queries import QueryService
from app.core.scheduler import SimulationController, create_scheduler
from app.core.simulator import FleetSimulator
from app.db.session import async_session, engine
from app.models.base import Base
from app.models import tables  # noqa: F401
from app.seed import seed_sample_data

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.seed_sample_data:
        await seed_sample_data(async_session)

    simulator = FleetSimulator(FleetStore(async_session))
    # Never tick over an unknown fleet: a failed load aborts startup
    try:
        await simulator.load()
    except LoadFailure:
        logger.exception("Fleet roster could not be loaded - not starting simulation")
        await engine.dispose()
        raise

    broadcaster = Broadcaster()
    await broadcaster.connect()

    queries = QueryService(
        simulator,
        FareCalculator(settings.fare_base, settings.fare_per_km),
        stop_proximity_m=settings.stop_proximity_m,
    )

    scheduler = create_scheduler(simulator, queries, broadcaster)
    controller = SimulationController(scheduler)

    # Wire up API modules
    vehicles.queries = queries
    routes.queries = queries
    stops.queries = queries
    fare.queries = queries
    ws.queries = queries
    ws.broadcaster = broadcaster
    simulation.simulator = simulator
    simulation.controller = controller

    controller.start()
    logger.info("Fleet simulator started - ticking every %dms", settings.tick_interval_ms)

    yield

    controller.shutdown()
    await broadcaster.close()
    await engine.dispose()
    logger.info("Fleet simulator shut down")


app = FastAPI(
    title="Fleet Simulator",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vehicles.router)
app.include_router(routes.router)
app.include_router(stops.router)
app.include_router(fare.router)
app.include_router(simulation.router)
app.include_router(ws.router)


@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }
