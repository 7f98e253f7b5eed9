"""APScheduler driver for the simulation tick."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

TICK_JOB_ID = "simulation_tick"


def create_scheduler(simulator, queries, broadcaster=None) -> AsyncIOScheduler:
    """Create the scheduler with the tick job.

    max_instances=1 keeps ticks from overlapping: a run that comes due while
    the previous tick is still working is skipped, so the next tick starts
    late instead of concurrently.
    """

    async def tick_and_publish() -> None:
        try:
            report = await simulator.tick()
        except Exception:
            logger.exception("Simulation tick failed")
            return
        if broadcaster is not None:
            await broadcaster.publish(queries.list_vehicles(), report)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        tick_and_publish,
        "interval",
        seconds=simulator.policy.tick_seconds,
        id=TICK_JOB_ID,
        name="Advance simulated vehicles",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


class SimulationController:
    """Start/stop control over the tick job."""

    def __init__(self, scheduler: AsyncIOScheduler) -> None:
        self.scheduler = scheduler

    @property
    def running(self) -> bool:
        job = self.scheduler.get_job(TICK_JOB_ID)
        return self.scheduler.running and job is not None and job.next_run_time is not None

    def start(self) -> bool:
        """Resume ticking. Returns False if it was already running."""
        if self.running:
            return False
        if not self.scheduler.running:
            self.scheduler.start()
        else:
            self.scheduler.resume_job(TICK_JOB_ID)
        logger.info("Simulation started")
        return True

    def stop(self) -> bool:
        """Pause ticking. Returns False if it was already stopped."""
        if not self.running:
            return False
        self.scheduler.pause_job(TICK_JOB_ID)
        logger.info("Simulation stopped")
        return True

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
