"""
Scheduler module for the Weather Alert Service.

Runs a sweep over the whole watchlist when started and then on a fixed
interval. Each city is checked on its own worker thread; the sweep waits
for all of them before it is reported complete.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional
from datetime import datetime
from dataclasses import dataclass, asdict

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import DEFAULT_SWEEP_WORKERS
from .database import Database
from .pipeline import CheckPipeline, CheckResult

logger = logging.getLogger(__name__)

CHECK_INTERVAL_MINUTES = 10

SWEEP_JOB_ID = "weather_check_job"


@dataclass
class SweepResult:
    """Summary of one sweep over the watchlist."""
    started_at: str
    finished_at: str
    cities_checked: int
    readings_stored: int
    alerts_raised: int
    fetch_failures: int
    skipped: bool = False


class WeatherScheduler:
    """
    Manages periodic weather checks for every watched city.

    A sweep that is triggered while another is still running is skipped
    rather than run concurrently.
    """

    def __init__(
        self,
        database: Database,
        pipeline: CheckPipeline,
        interval_minutes: int = CHECK_INTERVAL_MINUTES,
        max_workers: int = DEFAULT_SWEEP_WORKERS
    ):
        self.database = database
        self.pipeline = pipeline
        self.interval_minutes = interval_minutes
        self.max_workers = max_workers
        self.scheduler = BackgroundScheduler()
        self._is_running = False
        self._sweep_lock = threading.Lock()

        self._last_result: Optional[SweepResult] = None

    def run_sweep(self) -> SweepResult:
        """Check weather for all watched cities."""
        started_at = datetime.utcnow().isoformat()

        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("Previous weather check still in progress, skipping this one")
            return SweepResult(
                started_at=started_at,
                finished_at=datetime.utcnow().isoformat(),
                cities_checked=0,
                readings_stored=0,
                alerts_raised=0,
                fetch_failures=0,
                skipped=True
            )

        try:
            logger.info("Checking weather for all cities...")

            try:
                cities = self.database.list_cities()
            except Exception as e:
                logger.error(f"Error fetching cities: {e}")
                cities = []

            results = self._check_cities(cities)

            result = SweepResult(
                started_at=started_at,
                finished_at=datetime.utcnow().isoformat(),
                cities_checked=len(results),
                readings_stored=sum(1 for r in results if r.reading_stored),
                alerts_raised=sum(len(r.alerts) for r in results),
                fetch_failures=sum(1 for r in results if not r.fetched)
            )
            self._last_result = result

            logger.info(f"Weather check complete: {result.cities_checked} cities, "
                        f"{result.alerts_raised} alerts, {result.fetch_failures} fetch failures")
            return result
        finally:
            self._sweep_lock.release()

    def _check_cities(self, cities: List[dict]) -> List[CheckResult]:
        if not cities:
            return []
        workers = max(1, min(self.max_workers, len(cities)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="weather-check") as pool:
            return list(pool.map(self.pipeline.run, cities))

    def start(self, run_immediately: bool = True) -> None:
        """Start the scheduler; the first sweep runs right away by default."""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        # next_run_time=None would add the job paused, so only pass it to run now
        job_options = {"next_run_time": datetime.now()} if run_immediately else {}

        self.scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SWEEP_JOB_ID,
            name='Weather Check Sweep',
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_options
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(f"Scheduler started: weather checks every {self.interval_minutes}min")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            return
        self.scheduler.shutdown(wait=True)
        self._is_running = False
        logger.info("Scheduler stopped")

    def trigger_immediate_sweep(self) -> SweepResult:
        """Run a sweep now, outside the schedule."""
        return self.run_sweep()

    def get_last_result(self) -> Optional[SweepResult]:
        """Get the summary of the last completed sweep."""
        return self._last_result

    def get_scheduler_status(self) -> dict:
        """Get scheduler status information."""
        job = self.scheduler.get_job(SWEEP_JOB_ID) if self._is_running else None

        return {
            "is_running": self._is_running,
            "interval_minutes": self.interval_minutes,
            "next_run": job.next_run_time.isoformat() if job and job.next_run_time else None,
            "last_sweep": asdict(self._last_result) if self._last_result else None,
        }

    @property
    def is_running(self) -> bool:
        return self._is_running
